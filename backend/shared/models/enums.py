"""Domain enumerations for Matchday."""
from __future__ import annotations

from enum import Enum


class FixtureStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    HALFTIME = "halftime"
    FINISHED = "finished"
    POSTPONED = "postponed"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (
            FixtureStatus.FINISHED,
            FixtureStatus.CANCELLED,
            FixtureStatus.ABANDONED,
        )

    @classmethod
    def from_short_code(cls, code: str | None) -> "FixtureStatus":
        """Map an upstream short status code (NS, 1H, FT, ...) to a FixtureStatus."""
        return _SHORT_CODE_STATUS.get((code or "").upper(), cls.UNKNOWN)


_SHORT_CODE_STATUS: dict[str, FixtureStatus] = {
    "TBD": FixtureStatus.SCHEDULED,
    "NS": FixtureStatus.SCHEDULED,
    "1H": FixtureStatus.LIVE,
    "2H": FixtureStatus.LIVE,
    "ET": FixtureStatus.LIVE,
    "BT": FixtureStatus.LIVE,
    "P": FixtureStatus.LIVE,
    "LIVE": FixtureStatus.LIVE,
    "HT": FixtureStatus.HALFTIME,
    "FT": FixtureStatus.FINISHED,
    "AET": FixtureStatus.FINISHED,
    "PEN": FixtureStatus.FINISHED,
    "AWD": FixtureStatus.FINISHED,
    "WO": FixtureStatus.FINISHED,
    "PST": FixtureStatus.POSTPONED,
    "SUSP": FixtureStatus.SUSPENDED,
    "INT": FixtureStatus.SUSPENDED,
    "CANC": FixtureStatus.CANCELLED,
    "ABD": FixtureStatus.ABANDONED,
}


class MatchStrategy(str, Enum):
    """How a scraped candidate was linked to a fixture."""
    STADIUM = "stadium"
    EXACT_NAMES = "exact_names"
    PARTIAL_NAMES = "partial_names"
    NONE = "none"


class ImageLoadStatus(str, Enum):
    QUEUED = "queued"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"

    @property
    def is_pending(self) -> bool:
        return self in (ImageLoadStatus.QUEUED, ImageLoadStatus.LOADING)

    @property
    def view_state(self) -> str:
        """Tri-state consumed by the UI: loading / error / success."""
        if self == ImageLoadStatus.LOADED:
            return "success"
        if self == ImageLoadStatus.FAILED:
            return "error"
        return "loading"


class TeamFixtureScope(str, Enum):
    LAST = "last"
    NEXT = "next"
