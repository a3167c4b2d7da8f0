import logging
import os
from typing import Any, Callable, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULTS = {
    "policy": {"window_days": 5},
    "ordertrack": {
        "base_url": None,
        "token": None,
        "auth_mode": None,
        "api_key_name": "X-API-Key",
        "api_key": None,
        "timeout_seconds": 30.0,
    },
    "batch": {"workers": 1},
}

# env var -> (section, key, converter)
ENV_OVERRIDES = {
    "POLICY_WINDOW_DAYS": ("policy", "window_days", int),
    "OT_BASE": ("ordertrack", "base_url", str),
    "OT_TOKEN": ("ordertrack", "token", str),
    "OT_AUTH_MODE": ("ordertrack", "auth_mode", str),
    "OT_API_KEY_NAME": ("ordertrack", "api_key_name", str),
    "OT_API_KEY": ("ordertrack", "api_key", str),
    "OT_TIMEOUT_SECONDS": ("ordertrack", "timeout_seconds", float),
    "BATCH_WORKERS": ("batch", "workers", int),
}


def _default_path() -> str:
    return os.getenv(
        "RECONCILE_CONFIG",
        os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "reconcile.yml"),
    )


def _merge(base: Dict, override: Dict) -> Dict:
    # shallow merge per section
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in base.items()}
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            merged[k].update(v)
        else:
            merged[k] = v
    return merged


def _convert(name: str, raw: Any, converter: Callable[[Any], Any], default: Any) -> Any:
    try:
        return converter(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        logger.warning("Invalid %s=%r, using %r", name, raw, default)
        return default


def load_reconcile_config(path: Optional[str] = None) -> Dict:
    """DEFAULTS <- YAML file (optional) <- environment variables."""
    path = path or _default_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            file_cfg = yaml.safe_load(f) or {}
    except FileNotFoundError:
        file_cfg = {}

    cfg = _merge(DEFAULTS, file_cfg)

    for section, key, converter in ENV_OVERRIDES.values():
        if converter is str or cfg[section].get(key) is None:
            continue
        cfg[section][key] = _convert(f"{section}.{key}", cfg[section][key], converter, DEFAULTS[section][key])

    for name, (section, key, converter) in ENV_OVERRIDES.items():
        raw = os.getenv(name)
        if raw is None or not raw.strip():
            continue
        cfg[section][key] = _convert(name, raw, converter, cfg[section].get(key))

    cfg["batch"]["workers"] = max(1, cfg["batch"].get("workers") or 1)
    return cfg
