"""Remembers the id of the page a run still owes a cleanup for."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class MarkerStore(Protocol):
    """Single-slot key-value store: one outstanding page id at most."""

    def get(self) -> Optional[str]: ...

    def set(self, page_id: str) -> None: ...

    def clear(self) -> None: ...


class FileMarkerStore:
    """Marker kept as a one-line text file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        if not self.path.exists():
            return None
        value = self.path.read_text(encoding="utf-8").strip()
        return value or None

    def set(self, page_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(f"{page_id}\n", encoding="utf-8")
        os.replace(tmp, self.path)
        logger.debug("Marker %s set to %s", self.path, page_id)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.debug("Marker %s cleared", self.path)


class MemoryMarkerStore:
    def __init__(self, page_id: Optional[str] = None):
        self.value = page_id

    def get(self) -> Optional[str]:
        return self.value

    def set(self, page_id: str) -> None:
        self.value = page_id

    def clear(self) -> None:
        self.value = None
