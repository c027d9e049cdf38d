"""Persistent history of links that have been reported dead."""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Dict, Iterator, Optional

from .models import JournalEntry

logger = logging.getLogger("mdlinkcheck.journal")


def today_utc() -> str:
    """Current UTC calendar date as ``YYYY-MM-DD``."""
    return dt.datetime.now(dt.timezone.utc).date().isoformat()


def _target_mode(path: Path) -> int:
    """Mode for the saved journal: keep the existing one, else honour the umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


class BrokenLinkJournal:
    """Mapping of dead link -> first and latest sighting.

    Entries are never removed automatically. The journal is loaded once per
    run and saved after every processed input.
    """

    def __init__(self, entries: Optional[Dict[str, JournalEntry]] = None) -> None:
        self.entries: Dict[str, JournalEntry] = dict(entries or {})

    def __contains__(self, link: object) -> bool:
        return link in self.entries

    def __getitem__(self, link: str) -> JournalEntry:
        return self.entries[link]

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def record(self, link: str, context_label: Optional[str], today: Optional[str] = None) -> JournalEntry:
        """Register a dead sighting of ``link`` found in ``context_label``."""
        today = today or today_utc()
        entry = self.entries.get(link)
        if entry is not None:
            entry.latest_date = today
            logger.debug("Dead link seen again: %s (first seen %s)", link, entry.initial_date)
            return entry
        entry = JournalEntry(
            url=context_label,
            initial_date=today,
            latest_date=today,
            broken=False,
        )
        self.entries[link] = entry
        logger.debug("New dead link recorded: %s", link)
        return entry

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        return {link: entry.to_dict() for link, entry in self.entries.items()}

    @classmethod
    def from_dict(cls, payload: Dict[str, Dict[str, object]]) -> "BrokenLinkJournal":
        return cls({link: JournalEntry.from_dict(entry) for link, entry in payload.items()})

    @classmethod
    def load(cls, path: Path) -> "BrokenLinkJournal":
        """Load the journal; failures yield an empty journal and are logged."""
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError("journal root must be a JSON object")
            journal = cls.from_dict(payload)
        except FileNotFoundError:
            logger.error("Journal %s does not exist yet; starting with an empty journal", path)
            return cls()
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error("Unable to read journal %s: %s; starting with an empty journal", path, exc)
            return cls()
        logger.debug("Loaded %d journal entries from %s", len(journal), path)
        return journal

    def save(self, path: Path) -> bool:
        """Write the journal atomically; returns ``False`` if the write failed."""
        path = Path(path)
        payload = json.dumps(self.to_dict(), indent=4, ensure_ascii=False)
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload + "\n")
            os.chmod(tmp_name, _target_mode(path))
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.error("Failed to write journal %s: %s", path, exc)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False
        logger.debug("Saved %d journal entries to %s", len(self.entries), path)
        return True
