from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEDICATED_LOGS = {
    "posbill.sales": "sales.log",
    "posbill.inventory": "inventory.log",
    "posbill.wallet": "wallet.log",
}


def _event_fields(message: str) -> tuple[str, dict[str, str]] | None:
    """Split "sale_finalized sale_id=s1 total=9.00" into its event name and fields."""
    tokens = message.split()
    if len(tokens) < 2 or "=" in tokens[0]:
        return None
    if not all("=" in t for t in tokens[1:]):
        return None
    return tokens[0], dict(t.split("=", 1) for t in tokens[1:])


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        parsed = _event_fields(message)
        if parsed:
            payload["event"], payload["fields"] = parsed
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


HANDLER_PREFIX = "posbill:"


def _handler(path: Path, level: int) -> RotatingFileHandler:
    fh = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
    fh.set_name(f"{HANDLER_PREFIX}{path.name}")
    fh.setFormatter(JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S"))
    fh.setLevel(level)
    return fh


def is_posbill_handler(handler: logging.Handler) -> bool:
    return (handler.get_name() or "").startswith(HANDLER_PREFIX)


def setup_logging(logs_dir: Path, level: int = logging.INFO) -> None:
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    # handlers added by a host (test runner, basicConfig) do not count
    if any(is_posbill_handler(h) for h in root.handlers):
        return

    root.addHandler(_handler(logs_dir / "app.log", logging.INFO))
    root.addHandler(_handler(logs_dir / "errors.log", logging.ERROR))

    for name, filename in DEDICATED_LOGS.items():
        logger = logging.getLogger(name)
        logger.addHandler(_handler(logs_dir / filename, logging.INFO))
        logger.setLevel(logging.INFO)
