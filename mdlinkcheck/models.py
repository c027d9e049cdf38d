"""Data models used throughout the link-checking pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .config import CheckOptions
    from .inputs import ByteSource


class LinkStatus(str, Enum):
    """Classification assigned to a single link by the checker."""

    ALIVE = "alive"
    DEAD = "dead"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass(frozen=True)
class Verdict:
    """Result of checking one hyperlink."""

    link: str
    status: LinkStatus
    status_code: Optional[int] = None
    err: Optional[str] = None

    @property
    def is_dead(self) -> bool:
        return self.status is LinkStatus.DEAD


@dataclass(frozen=True)
class SourceInput:
    """One document to check: a file, a URL or standard input."""

    label: Optional[str]
    source: "ByteSource"
    options: "CheckOptions"


@dataclass
class JournalEntry:
    """History of a link that has been seen dead at least once.

    ``url`` holds the label of the input the link was found in (``None`` for
    standard input). ``broken`` is written as ``False`` on creation and is not
    updated afterwards.
    """

    url: Optional[str]
    initial_date: str
    latest_date: str
    broken: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "JournalEntry":
        if not isinstance(payload, dict):
            raise ValueError(f"journal entry must be a JSON object, got {type(payload).__name__}")
        return cls(
            url=payload.get("url"),
            initial_date=str(payload["initial_date"]),
            latest_date=str(payload.get("latest_date", payload["initial_date"])),
            broken=bool(payload.get("broken", False)),
        )


class FatalError(RuntimeError):
    """Raised for conditions that terminate the whole run with exit code 1."""
