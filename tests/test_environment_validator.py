import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from environment_validator import EnvironmentValidator
from recon_errors import ConfigurationError


def _cfg(**ordertrack):
    base = {"base_url": "https://ot.example.com", "token": None, "auth_mode": None,
            "api_key_name": "X-API-Key", "api_key": None, "timeout_seconds": 30.0}
    base.update(ordertrack)
    return {"policy": {"window_days": 5}, "ordertrack": base, "batch": {"workers": 1}}


def test_token_config_passes():
    results = EnvironmentValidator(_cfg(token="t")).validate_all()
    assert results["status"] == "pass"


def test_header_key_config_passes():
    EnvironmentValidator(_cfg(auth_mode="header", api_key="k")).ensure_ready()


def test_missing_base_and_auth():
    results = EnvironmentValidator(_cfg(base_url=None)).validate_all()
    assert results["status"] == "fail"
    assert results["missing_required"] == ["OT_BASE", "OT_TOKEN or OT_AUTH_MODE"]


def test_key_mode_without_key():
    results = EnvironmentValidator(_cfg(auth_mode="query")).validate_all()
    assert results["missing_required"] == ["OT_API_KEY"]


def test_invalid_values():
    cfg = _cfg(base_url="ot.example.com", auth_mode="cookie", api_key="k")
    cfg["policy"]["window_days"] = -1
    results = EnvironmentValidator(cfg).validate_all()
    assert [i["name"] for i in results["invalid_format"]] == ["OT_BASE", "OT_AUTH_MODE", "POLICY_WINDOW_DAYS"]


def test_ensure_ready_raises_before_processing():
    with pytest.raises(ConfigurationError) as exc:
        EnvironmentValidator(_cfg(base_url="")).ensure_ready()
    assert "OT_BASE" in str(exc.value)


def test_worker_pool_warning():
    cfg = _cfg(token="t")
    cfg["batch"]["workers"] = 3
    results = EnvironmentValidator(cfg).validate_all()
    assert results["status"] == "pass"
    assert results["warnings"]
