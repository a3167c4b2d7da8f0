import json
import os
import sys
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

import reconcile_main
from recon_models import Mode, SourceTag

ENV_NAMES = ["POLICY_WINDOW_DAYS", "OT_BASE", "OT_TOKEN", "OT_AUTH_MODE", "OT_API_KEY_NAME",
             "OT_API_KEY", "OT_TIMEOUT_SECONDS", "BATCH_WORKERS", "RECONCILE_CONFIG"]


def _env(monkeypatch, tmp_path, **values):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("RECONCILE_CONFIG", str(tmp_path / "none.yml"))
    monkeypatch.setattr(reconcile_main, "load_dotenv", lambda: None)
    for k, v in values.items():
        monkeypatch.setenv(k, v)


def test_parse_arguments_defaults():
    args = reconcile_main.parse_arguments(["a.csv", "b.xlsx"])
    assert args.files == ["a.csv", "b.xlsx"]
    assert args.mode == "AUTO"
    assert args.source is None
    assert not args.json


def test_load_uploads(tmp_path):
    path = tmp_path / "po.csv"
    path.write_bytes(b"PO Number\nPO1\n")

    uploads = reconcile_main.load_uploads([str(path)], "primary", "SO")

    assert uploads[0].name == "po.csv"
    assert uploads[0].content == b"PO Number\nPO1\n"
    assert uploads[0].source_tag == SourceTag.PRIMARY
    assert uploads[0].modes == (Mode.SECONDARY,)


def test_main_without_credentials_fails(tmp_path, monkeypatch, capsys):
    _env(monkeypatch, tmp_path)
    assert reconcile_main.main(["x.csv"]) == 2
    assert "OT_BASE" in capsys.readouterr().err


def test_main_prints_json(tmp_path, monkeypatch, capsys):
    _env(monkeypatch, tmp_path, OT_BASE="https://ot.example.com", OT_TOKEN="t")
    path = tmp_path / "po.csv"
    path.write_text("PO Number,Vendor,Tracking,Ship Date\nPO1,Acme,1Z999,2024-01-10\n", encoding="utf-8")

    client = MagicMock()
    client.fetch_order.return_value = {"vendorName": "Acme Inc"}
    client.fetch_activity_by_order.return_value = {
        "docs": [{"receiptDate": "2024-01-11", "packages": [{"trackingNumber": "1Z999"}]}]
    }
    with patch("reconcile_main.OrderTrackClient.from_config", return_value=client):
        code = reconcile_main.main([str(path), "--source", "primary", "--json"])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["summary"] == {"MATCHED": 1}
    assert out["details"][0]["mode"] == "PO"
    assert out["file_errors"] == []


def test_main_diag(tmp_path, monkeypatch, capsys):
    _env(monkeypatch, tmp_path, OT_BASE="https://ot.example.com", OT_TOKEN="t")
    client = MagicMock()
    client.diagnose.return_value = [
        {"url": "https://ot.example.com/receipts", "status": 200, "ok": True, "message": ""},
        {"url": "https://ot.example.com/shipments", "status": 401, "ok": False, "message": "unauthorized"},
    ]
    with patch("reconcile_main.OrderTrackClient.from_config", return_value=client):
        assert reconcile_main.main(["--diag"]) == 1
    assert "unauthorized" in capsys.readouterr().out


def test_parse_arguments_collects_tagged_files():
    args = reconcile_main.parse_arguments(["--primary", "a.csv", "--carrier", "m1.csv", "--carrier", "m2.xlsx"])
    assert args.files == []
    assert args.primary == ["a.csv"]
    assert args.secondary == []
    assert args.carrier == ["m1.csv", "m2.xlsx"]


def test_main_mixed_batch_uses_each_files_tag(tmp_path, monkeypatch, capsys):
    _env(monkeypatch, tmp_path, OT_BASE="https://ot.example.com", OT_TOKEN="t")
    receiving = tmp_path / "receiving.csv"
    receiving.write_text("PO Number,Vendor,Tracking,Ship Date\nPO1,Acme,1Z999,2024-01-10\n", encoding="utf-8")
    manifest = tmp_path / "manifest.csv"
    manifest.write_text("Order Number,Tracking\nSO5,1Z888\n", encoding="utf-8")

    known = {(Mode.PRIMARY, "PO1"): {"vendorName": "Acme"}, (Mode.SECONDARY, "SO5"): {"customerName": "Acme"}}
    client = MagicMock()
    client.fetch_order.side_effect = lambda mode, number: known.get((mode, number))
    client.fetch_activity_by_order.side_effect = lambda mode, number: {
        "docs": [{"date": "2024-01-11",
                  "packages": [{"trackingNumber": "1Z999" if number == "PO1" else "1Z888"}]}]
    }
    with patch("reconcile_main.OrderTrackClient.from_config", return_value=client):
        code = reconcile_main.main(["--primary", str(receiving), "--carrier", str(manifest), "--json"])

    assert code == 0
    details = json.loads(capsys.readouterr().out)["details"]
    assert [d["file"] for d in details] == ["receiving.csv", "manifest.csv"]

    assert details[0]["modes"] == ["PO"]
    assert details[0]["mode"] == "PO"
    assert details[0]["per_mode"] == {}
    assert details[0]["verdict"] == "MATCHED"

    assert details[1]["modes"] == ["PO", "SO"]
    assert details[1]["mode"] == "SO"
    assert details[1]["per_mode"] == {"PO": "NO_MATCH_ORDER", "SO": "MATCHED"}
