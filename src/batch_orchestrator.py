"""
Batch reconciliation: rows -> lookups -> verdicts -> arbitration -> summary.

Per row and mode the pipeline is: order lookup, then (only if the order
exists) activity lookup, then the decision cascade. Rows without an order
number are looked up by tracking instead, and "order exists" then means at
least one package came back. A mode that raises yields an ERROR verdict,
which ranks lowest in arbitration.
"""

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from activity_mapper import extract_packages, extract_party, party_from_record
from decision_engine import DEFAULT_POLICY_WINDOW_DAYS, DecisionInput, evaluate
from mode_arbitrator import arbitrate, preferred_mode
from recon_errors import OrderTrackError, ReconcileError
from recon_models import (
    BatchResult,
    CanonicalRow,
    FileFailure,
    Mode,
    ReconciliationResult,
    RowError,
    RowOutcome,
    SourceTag,
    UploadFile,
    Verdict,
    VerdictKind,
)
from row_extractor import extract_rows

logger = logging.getLogger(__name__)

BOTH_MODES = (Mode.PRIMARY, Mode.SECONDARY)


def resolve_modes(source_tag: Optional[SourceTag], explicit: Optional[Sequence[Mode]] = None) -> Tuple[Mode, ...]:
    if explicit:
        return tuple(explicit)
    if source_tag == SourceTag.PRIMARY:
        return (Mode.PRIMARY,)
    if source_tag == SourceTag.SECONDARY:
        return (Mode.SECONDARY,)
    return BOTH_MODES


class Reconciler:
    """Runs the lookup-then-decide pipeline against an order-management directory.

    `directory` needs fetch_order / fetch_activity_by_order /
    find_activity_by_tracking (see OrderTrackClient).
    """

    def __init__(self, directory, policy_window_days: int = DEFAULT_POLICY_WINDOW_DAYS, workers: int = 1):
        self.directory = directory
        self.policy_window_days = policy_window_days
        self.workers = max(1, workers)

    @classmethod
    def from_config(cls, directory, cfg: Dict) -> "Reconciler":
        return cls(directory, policy_window_days=cfg["policy"]["window_days"], workers=cfg["batch"]["workers"])

    def _lookup(self, fn: Callable[..., Any], *args) -> Optional[Any]:
        # transport failures read as "absent"; no retry
        try:
            return fn(*args)
        except OrderTrackError as e:
            logger.warning("Lookup failed, treating as absent: %s", e)
            return None

    def gather(self, row: CanonicalRow, mode: Mode) -> DecisionInput:
        if row.order_number:
            order = self._lookup(self.directory.fetch_order, mode, row.order_number)
            order_exists = bool(order)
            activity = self._lookup(self.directory.fetch_activity_by_order, mode, row.order_number) if order_exists else None
            packages = extract_packages(activity)
            party = party_from_record(order) or extract_party(activity)
        else:
            date_hint = row.asserted_date.isoformat() if row.asserted_date else None
            activity = self._lookup(self.directory.find_activity_by_tracking, mode, row.tracking_number, date_hint)
            packages = extract_packages(activity)
            order_exists = bool(packages)
            party = extract_party(activity)

        return DecisionInput(
            mode=mode,
            party_upload=row.party_name,
            tracking_upload=row.tracking_number,
            asserted_date=row.asserted_date,
            order_exists=order_exists,
            packages=tuple(packages),
            party_authoritative=party,
            policy_window_days=self.policy_window_days,
        )

    def evaluate_mode(self, row: CanonicalRow, mode: Mode) -> Verdict:
        try:
            return evaluate(self.gather(row, mode))
        except Exception as e:
            logger.warning("%s evaluation of %s failed: %s", mode.value, row.order_number or row.tracking_number, e)
            return Verdict(VerdictKind.ERROR, reason=str(e) or type(e).__name__)

    def evaluate_row(self, row_number: int, row: CanonicalRow, modes: Sequence[Mode]) -> ReconciliationResult:
        per_mode = tuple((mode, self.evaluate_mode(row, mode)) for mode in modes)
        if len(per_mode) == 1:
            mode, verdict = per_mode[0]
        else:
            mode, verdict = arbitrate(per_mode, row.source_tag)
        return ReconciliationResult(row_number=row_number, row=row, mode=mode, verdict=verdict, per_mode=per_mode)

    def _evaluate_safely(self, item: Tuple[int, CanonicalRow, Tuple[Mode, ...]]) -> RowOutcome:
        row_number, row, modes = item
        try:
            return self.evaluate_row(row_number, row, modes)
        except Exception as e:  # row-level isolation
            logger.warning("Row %d failed: %s", row_number, e)
            return RowError(row_number=row_number, row=row, modes=tuple(modes), message=str(e) or type(e).__name__)

    def reconcile_rows(self, rows: Sequence[CanonicalRow], modes: Sequence[Mode]) -> List[RowOutcome]:
        items = [(i, row, tuple(modes)) for i, row in enumerate(rows, 1)]
        if self.workers == 1:
            return [self._evaluate_safely(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(self._evaluate_safely, items))

    def reconcile_files(self, files: Sequence[UploadFile], fail_fast: bool = False) -> BatchResult:
        result = BatchResult()
        counts: Counter = Counter()
        for upload in files:
            try:
                rows = extract_rows(upload.content, upload.name, upload.source_tag)
            except ReconcileError as e:
                logger.error("%s: %s", upload.name, e)
                if fail_fast:
                    raise
                result.file_errors.append(FileFailure(upload.name, str(e)))
                continue

            modes = resolve_modes(upload.source_tag, upload.modes)
            logger.info("%s: %d row(s), modes %s", upload.name, len(rows), "/".join(m.value for m in modes))
            for outcome in self.reconcile_rows(rows, modes):
                counts[outcome.verdict.kind.value] += 1
                result.details.append(outcome_to_detail(outcome, upload.name))

        result.counts = dict(counts)
        logger.info("Batch summary: %s", result.counts)
        return result


def outcome_to_detail(outcome: RowOutcome, file_name: str = "") -> Dict:
    row = outcome.row
    verdict = outcome.verdict
    if isinstance(outcome, ReconciliationResult):
        modes = outcome.modes
        chosen = outcome.mode.value
        per_mode = {m.value: v.kind.value for m, v in outcome.per_mode} if len(outcome.per_mode) > 1 else {}
    else:
        modes = list(outcome.modes)
        chosen = preferred_mode(row.source_tag).value if len(modes) > 1 else (modes[0].value if modes else "")
        per_mode = {}

    return {
        "file": file_name,
        "row": outcome.row_number,
        "mode": chosen,
        "modes": [m.value for m in modes],
        "order_number": row.order_number or "",
        "party_upload": row.party_name or "",
        "tracking_upload": row.tracking_number or "",
        "asserted_date": row.asserted_date.isoformat() if row.asserted_date else "",
        "amount": str(row.amount) if row.amount is not None else None,
        "verdict": verdict.kind.value,
        "reason": verdict.reason,
        "day_delta": verdict.day_delta,
        "per_mode": per_mode,
    }


def reconcile_batch(directory, files: Sequence[UploadFile], cfg: Optional[Dict] = None,
                    fail_fast: bool = False) -> BatchResult:
    if cfg is None:
        reconciler = Reconciler(directory)
    else:
        reconciler = Reconciler.from_config(directory, cfg)
    return reconciler.reconcile_files(files, fail_fast=fail_fast)
