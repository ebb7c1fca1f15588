"""Monthly character budget for the metered speech provider."""

import json
import logging
import os
from datetime import datetime, timezone

from audio_movie.constants import (
    CHARS_PER_AUDIO_MINUTE,
    USAGE_CRITICAL_PERCENT,
    USAGE_LIMIT,
    USAGE_LOG_SIZE,
    USAGE_WARN_PERCENT,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UsageLedger:
    """JSON-backed usage counter that resets when the month changes.

    Every public call reloads the file and rolls the period over first,
    so a stale record from last month never blocks this month's budget.
    The ledger itself does no locking; callers that share it across
    concurrent tasks must serialize access.
    """

    def __init__(self, path: str, limit: int = USAGE_LIMIT, clock=_now):
        self.path = path
        self.limit = limit
        self.clock = clock

    def period_key(self) -> str:
        return self.clock().strftime("%Y-%m")

    def _fresh(self) -> dict:
        return {
            "period": self.period_key(),
            "characters_used": 0,
            "limit": self.limit,
            "requests": [],
        }

    def _save(self, record: dict) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(record, f, indent=2)

    def _normalize(self, record) -> dict | None:
        """Fill in missing fields of a stored record; None when it is unusable."""
        if not isinstance(record, dict):
            return None
        try:
            record["characters_used"] = int(record.get("characters_used", 0))
            record["limit"] = int(record.get("limit", self.limit))
        except (TypeError, ValueError):
            return None
        if not isinstance(record.get("requests"), list):
            record["requests"] = []
        return record

    def load(self) -> dict:
        """Return the current period's record, resetting it on rollover."""
        record = None
        if os.path.exists(self.path):
            try:
                with open(self.path) as f:
                    record = json.load(f)
            except json.JSONDecodeError:
                logger.warning("Malformed usage file: %s, starting a new record", self.path)

        if record is not None:
            record = self._normalize(record)
            if record is None:
                logger.warning("Malformed usage record in %s, starting a new record", self.path)

        if record is None:
            record = self._fresh()
            self._save(record)
            return record

        current = self.period_key()
        if record.get("period") != current:
            logger.info(
                "New period %s: resetting usage (%s used %s chars)",
                current, record.get("period"), record.get("characters_used", 0),
            )
            record = self._fresh()
            self._save(record)
        return record

    def has_budget(self, characters: int) -> bool:
        record = self.load()
        limit = record["limit"]
        if record["characters_used"] >= limit:
            return False
        return record["characters_used"] + characters <= limit

    def record_usage(self, characters: int, text: str = "") -> dict:
        """Add characters to this period and log the request."""
        record = self.load()
        record["characters_used"] += characters
        record["requests"].append({
            "timestamp": self.clock().isoformat(),
            "characters": characters,
            "text_preview": text[:50],
        })
        record["requests"] = record["requests"][-USAGE_LOG_SIZE:]
        self._save(record)

        stats = self._stats(record)
        if stats["percent_used"] >= USAGE_CRITICAL_PERCENT:
            logger.warning(
                "Metered quota at %.1f%%: only %d chars left, fallback providers take over when exhausted",
                stats["percent_used"], stats["remaining"],
            )
        elif stats["percent_used"] >= USAGE_WARN_PERCENT:
            logger.warning("Metered quota at %.1f%%: %d chars remaining", stats["percent_used"], stats["remaining"])
        return stats

    def _stats(self, record: dict) -> dict:
        used = record["characters_used"]
        limit = record.get("limit", self.limit)
        remaining = max(limit - used, 0)
        percent = round(used / limit * 100, 1) if limit else 100.0
        return {
            "period": record["period"],
            "used": used,
            "limit": limit,
            "remaining": remaining,
            "percent_used": percent,
            "estimated_minutes_remaining": remaining // CHARS_PER_AUDIO_MINUTE,
            "will_fallback": used >= limit,
        }

    def current_stats(self) -> dict:
        return self._stats(self.load())
