from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from posbill.domain.errors import ValidationError


@dataclass(frozen=True)
class AppPaths:
    base_dir: Path
    db_path: Path
    logs_dir: Path


@dataclass(frozen=True)
class BillingSettings:
    gst_rate_override: Optional[float] = None
    suggest_url: Optional[str] = None
    suggest_timeout: float = 2.0
    low_stock_threshold: float = 10


def _windows_appdata() -> Path:
    return Path(os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming")))


def _mac_app_support() -> Path:
    return Path.home() / "Library" / "Application Support"


def get_app_paths(app_name: str = "PosBilling") -> AppPaths:
    if sys.platform.startswith("win"):
        base = _windows_appdata() / app_name
    elif sys.platform == "darwin":
        base = _mac_app_support() / app_name
    else:
        base = Path.home() / f".{app_name.lower()}"

    logs = base / "logs"
    db = base / "pos.db"

    base.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)

    return AppPaths(base_dir=base, db_path=db, logs_dir=logs)


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ValidationError(f"{key} must be a number. Received: {raw!r}") from e


def load_settings(env: Mapping[str, str] | None = None) -> BillingSettings:
    env = os.environ if env is None else env

    gst = _env_float(env, "POSBILL_GST_RATE")
    if gst is not None and not 0 <= gst <= 100:
        raise ValidationError("POSBILL_GST_RATE must be between 0 and 100.")

    timeout = _env_float(env, "POSBILL_SUGGEST_TIMEOUT")
    if timeout is not None and timeout <= 0:
        raise ValidationError("POSBILL_SUGGEST_TIMEOUT must be > 0.")

    low_stock = _env_float(env, "POSBILL_LOW_STOCK")
    if low_stock is not None and low_stock < 0:
        raise ValidationError("POSBILL_LOW_STOCK must be >= 0.")

    return BillingSettings(
        gst_rate_override=gst,
        suggest_url=env.get("POSBILL_SUGGEST_URL", "").strip() or None,
        suggest_timeout=timeout if timeout is not None else 2.0,
        low_stock_threshold=low_stock if low_stock is not None else 10,
    )
