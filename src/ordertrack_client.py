import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from recon_errors import ConfigurationError, OrderTrackError
from recon_models import Mode

logger = logging.getLogger(__name__)

ORDER_PATHS = {Mode.PRIMARY: "purchase-orders", Mode.SECONDARY: "sales-orders"}
ACTIVITY_PATHS = {Mode.PRIMARY: "receipts", Mode.SECONDARY: "shipments"}


def build_auth(cfg: Dict) -> Tuple[Dict[str, str], Dict[str, str]]:
    """(headers, params) for the configured auth scheme: bearer token, header key or query key."""
    token = (cfg.get("token") or "").strip()
    mode = (cfg.get("auth_mode") or "").strip().lower()
    name = (cfg.get("api_key_name") or "X-API-Key").strip()
    key = (cfg.get("api_key") or "").strip()

    if token:
        return {"Authorization": f"Bearer {token}"}, {}
    if mode == "header" and key:
        return {name: key}, {}
    if mode == "query" and key:
        return {}, {name: key}
    raise ConfigurationError("No OT auth configured (set OT_TOKEN, or OT_AUTH_MODE with OT_API_KEY)")


class OrderTrackClient:
    """Read-only client for the order-management system."""

    def __init__(self, base_url: str, auth_headers: Dict[str, str], auth_params: Optional[Dict[str, str]] = None,
                 timeout: float = 30.0):
        if not base_url:
            raise ConfigurationError("Missing OT_BASE")
        self.base_url = base_url.rstrip("/")
        self.headers = dict(auth_headers)
        self.auth_params = dict(auth_params or {})
        self.timeout = timeout

    @classmethod
    def from_config(cls, cfg: Dict) -> "OrderTrackClient":
        ot = cfg["ordertrack"]
        headers, params = build_auth(ot)
        return cls(ot.get("base_url"), headers, params, timeout=ot.get("timeout_seconds") or 30.0)

    def _get(self, path: str, params: Dict[str, Any]) -> Optional[Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = requests.get(
                url, headers=self.headers, params={**self.auth_params, **params}, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise OrderTrackError(url, str(e)) from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise OrderTrackError(url, response.text[:200], status=response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise OrderTrackError(url, f"invalid JSON: {e}", status=response.status_code) from e

    def fetch_order(self, mode: Mode, order_number: str) -> Optional[Any]:
        """Order record (partyName/vendorName/customerName) or None when it does not exist."""
        return self._get(ORDER_PATHS[mode], {"orderNumber": order_number})

    def fetch_activity_by_order(self, mode: Mode, order_number: str) -> Optional[Any]:
        return self._get(ACTIVITY_PATHS[mode], {"orderNumber": order_number})

    def find_activity_by_tracking(self, mode: Mode, tracking: str, date_hint: Optional[str] = None) -> Optional[Any]:
        params = {"tracking": tracking}
        if date_hint:
            params["date"] = date_hint
        return self._get(ACTIVITY_PATHS[mode], params)

    def diagnose(self) -> List[Dict]:
        """Probe both activity endpoints with limit=1."""
        results = []
        for path in (ACTIVITY_PATHS[Mode.PRIMARY], ACTIVITY_PATHS[Mode.SECONDARY]):
            url = f"{self.base_url}/{path}"
            try:
                r = requests.get(url, headers=self.headers, params={**self.auth_params, "limit": 1},
                                 timeout=self.timeout)
                results.append({"url": url, "status": r.status_code, "ok": r.ok, "message": "" if r.ok else r.text[:200]})
            except requests.RequestException as e:
                status = e.response.status_code if e.response is not None else 0
                results.append({"url": url, "status": status, "ok": False, "message": str(e)})
        return results
