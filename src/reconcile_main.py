import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from batch_orchestrator import Reconciler
from config_loader import load_reconcile_config
from environment_validator import EnvironmentValidator
from ordertrack_client import OrderTrackClient
from recon_errors import ConfigurationError, ReconcileError
from recon_models import BatchResult, Mode, SourceTag, UploadFile

MODE_CHOICES = {"PO": (Mode.PRIMARY,), "SO": (Mode.SECONDARY,), "AUTO": None}


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile PO/SO/ship-doc/carrier uploads against the order-management system.")
    parser.add_argument("files", nargs="*", help="CSV or XLSX uploads tagged with --source")
    for tag in SourceTag:
        name = tag.value.lower()
        parser.add_argument(f"--{name}", action="append", default=[], metavar="FILE",
                            help=f"upload tagged {tag.value} (repeatable)")
    parser.add_argument("--mode", choices=sorted(MODE_CHOICES), default="AUTO",
                        help="PO or SO to force one interpretation; AUTO resolves from each file's tag")
    parser.add_argument("--source", choices=[t.value.lower() for t in SourceTag],
                        help="tag for the positional files (primary, secondary, carrier)")
    parser.add_argument("--window", type=int, help="policy window in days (overrides POLICY_WINDOW_DAYS)")
    parser.add_argument("--config", help="path to reconcile.yml")
    parser.add_argument("--json", action="store_true", help="print the result as JSON")
    parser.add_argument("--fail-fast", action="store_true", help="stop at the first unreadable file")
    parser.add_argument("--diag", action="store_true", help="check connectivity to the order-management system and exit")
    return parser.parse_args(argv)


def load_uploads(paths: List[str], source: Optional[str], mode: str) -> List[UploadFile]:
    tag = SourceTag(source.upper()) if source else None
    return [
        UploadFile(name=Path(p).name, content=Path(p).read_bytes(), source_tag=tag, modes=MODE_CHOICES[mode])
        for p in paths
    ]


def collect_uploads(args: argparse.Namespace) -> List[UploadFile]:
    """Positional files under --source, then each --primary/--secondary/--carrier file under its own tag."""
    uploads = load_uploads(args.files, args.source, args.mode)
    for tag in SourceTag:
        name = tag.value.lower()
        uploads.extend(load_uploads(getattr(args, name), name, args.mode))
    return uploads


def print_summary(result: BatchResult):
    print("\n=== Reconciliation summary ===")
    for kind, count in sorted(result.counts.items(), key=lambda kv: (-kv[1], kv[0])):
        print(f"  {kind:<22} {count}")

    if result.file_errors:
        print("\n❌ Files not processed:")
        for failure in result.file_errors:
            print(f"  {failure.file_name}: {failure.message}")

    if not result.details:
        return
    print("\n=== Details ===")
    for d in result.details:
        per_mode = " ".join(f"{m}={v}" for m, v in d["per_mode"].items())
        delta = "" if d["day_delta"] is None else f" Δ{d['day_delta']}d"
        print(f"  [{d['file']}#{d['row']}] {d['mode']} {d['order_number'] or '-'} "
              f"{d['tracking_upload'] or '-'} -> {d['verdict']}{delta} {d['reason']} {per_mode}".rstrip())


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_arguments(argv)
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_reconcile_config(args.config)
    if args.window is not None:
        cfg["policy"]["window_days"] = args.window

    try:
        EnvironmentValidator(cfg).ensure_ready()
        client = OrderTrackClient.from_config(cfg)
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2

    if args.diag:
        checks = client.diagnose()
        for c in checks:
            mark = "✅" if c["ok"] else "❌"
            print(f"{mark} {c['url']} status={c['status']} {c['message']}".rstrip())
        return 0 if all(c["ok"] for c in checks) else 1

    uploads = collect_uploads(args)
    if not uploads:
        print("No files given", file=sys.stderr)
        return 2

    try:
        result = Reconciler.from_config(client, cfg).reconcile_files(uploads, fail_fast=args.fail_fast)
    except ReconcileError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print_summary(result)
    return 0 if not result.file_errors else 1


if __name__ == "__main__":
    sys.exit(main())
