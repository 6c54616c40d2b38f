from __future__ import annotations

import logging
from typing import Iterable, Optional

import requests

log = logging.getLogger("posbill.suggest")

MAX_SUGGESTION_LENGTH = 60


class SuggestionService:
    """
    Best-effort upsell hints from an external service.

    Advisory only: every failure ends in None and a warning, never an exception,
    and nothing here reads or writes a bill.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout: float = 2.0):
        self.endpoint = (endpoint or "").strip() or None
        self.timeout = float(timeout)

    def _fetch_json(self, url: str, payload: dict) -> dict:
        r = requests.post(url, json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    @staticmethod
    def _extract_suggestion(data: object) -> Optional[str]:
        # accepted shapes: {"suggestion": "Bananas"} or {"suggestions": ["Bananas", ...]}
        if not isinstance(data, dict):
            return None
        value = data.get("suggestion")
        if value is None and isinstance(data.get("suggestions"), list) and data["suggestions"]:
            value = data["suggestions"][0]
        if not isinstance(value, str):
            return None
        text = value.strip()
        return text[:MAX_SUGGESTION_LENGTH] or None

    def suggest_upsell(self, item_names: Iterable[str]) -> Optional[str]:
        names = [n.strip() for n in item_names if n and n.strip()]
        if not names or not self.endpoint:
            return None
        try:
            data = self._fetch_json(self.endpoint, {"items": names})
        except (requests.RequestException, ValueError) as e:
            log.warning("suggestion_failed url=%s error=%s", self.endpoint, e)
            return None
        suggestion = self._extract_suggestion(data)
        if suggestion is None:
            log.warning("suggestion_unusable url=%s", self.endpoint)
        return suggestion
