"""
Startup checks for order-management connectivity settings.

A run needs a base URL and one usable auth scheme before any row is read.
"""

import re
from typing import Dict, List

from recon_errors import ConfigurationError


class EnvironmentValidator:
    """Validates the merged reconcile config (see config_loader)."""

    URL_PATTERN = r"^https?://[^\s/]+"
    AUTH_MODES = ("header", "query")

    def __init__(self, cfg: Dict):
        self.cfg = cfg
        self.missing: List[str] = []
        self.invalid: List[Dict[str, str]] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Dict:
        self.missing, self.invalid, self.warnings = [], [], []
        self._validate_base_url()
        self._validate_auth()
        self._validate_policy()
        return {
            "status": "pass" if not self.missing and not self.invalid else "fail",
            "missing_required": list(self.missing),
            "invalid_format": list(self.invalid),
            "warnings": list(self.warnings),
        }

    def _validate_base_url(self):
        base = (self.cfg["ordertrack"].get("base_url") or "").strip()
        if not base:
            self.missing.append("OT_BASE")
        elif not re.match(self.URL_PATTERN, base):
            self.invalid.append({"name": "OT_BASE", "issue": f"not an http(s) URL: {base!r}"})

    def _validate_auth(self):
        ot = self.cfg["ordertrack"]
        if (ot.get("token") or "").strip():
            return
        mode = (ot.get("auth_mode") or "").strip().lower()
        if not mode:
            self.missing.append("OT_TOKEN or OT_AUTH_MODE")
            return
        if mode not in self.AUTH_MODES:
            self.invalid.append({"name": "OT_AUTH_MODE", "issue": f"expected header|query, got {mode!r}"})
            return
        if not (ot.get("api_key") or "").strip():
            self.missing.append("OT_API_KEY")

    def _validate_policy(self):
        window = self.cfg["policy"].get("window_days")
        if not isinstance(window, int) or isinstance(window, bool) or window < 0:
            self.invalid.append({"name": "POLICY_WINDOW_DAYS", "issue": f"expected a non-negative integer, got {window!r}"})
        if self.cfg["batch"].get("workers", 1) > 1:
            self.warnings.append(f"BATCH_WORKERS={self.cfg['batch']['workers']}: rows are evaluated concurrently")

    def ensure_ready(self) -> None:
        """Raise ConfigurationError before any row is processed."""
        results = self.validate_all()
        if results["status"] == "pass":
            return
        problems = list(results["missing_required"]) + [f"{i['name']}: {i['issue']}" for i in results["invalid_format"]]
        raise ConfigurationError("Order-management system is not configured: " + "; ".join(problems))
