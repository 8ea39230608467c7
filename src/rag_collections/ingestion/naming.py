"""Deterministic, collision-resistant collection identifiers.

Format: ``"{source_type}_{slug}_{unix_millis}"``, e.g.
``text_quarterly-report_1718035200123``.  The slug keeps ids legible in
the vector store, the prefix partitions the namespace by source type and
the millisecond component makes ids unique.

Ids must also be valid Chroma collection names (3-63 characters from
``[A-Za-z0-9._-]``, alphanumeric at both ends), hence the slug cap.
"""

from __future__ import annotations

import re
import threading
import time
import unicodedata
from datetime import datetime, timezone
from typing import Callable

from rag_collections.models import Collection, SourceType

MAX_SLUG_LENGTH = 40
EMPTY_SLUG = "untitled"
SEPARATOR = "-"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(title: str, *, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Lower-case, ASCII-fold and hyphenate *title*.

    >>> slugify("Café Menü — 2024!")
    'cafe-menu-2024'
    """
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub(SEPARATOR, folded.lower()).strip(SEPARATOR)
    if len(slug) > max_length:
        cut = slug[:max_length]
        # prefer a word boundary
        if SEPARATOR in cut[max_length // 2 :]:
            cut = cut[: cut.rindex(SEPARATOR)]
        slug = cut.strip(SEPARATOR)
    return slug or EMPTY_SLUG


def _unix_millis() -> int:
    return time.time_ns() // 1_000_000


class CollectionNamer:
    """Issue collection ids with a strictly increasing time component.

    When two ids are requested inside the same millisecond (or the clock
    steps backwards) the second one uses ``last + 1``.  An instance is
    owned by one pipeline; ids from separate processes rely on the clock
    alone.

    Parameters
    ----------
    clock:
        Zero-argument callable returning Unix time in milliseconds.
    """

    def __init__(self, clock: Callable[[], int] = _unix_millis) -> None:
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def _next_millis(self) -> int:
        with self._lock:
            now = self._clock()
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return now

    def create(self, source_type: SourceType, title: str) -> Collection:
        """Issue a :class:`Collection` whose ``created_at`` matches its id."""
        millis = self._next_millis()
        return Collection(
            id=f"{source_type.value}_{slugify(title)}_{millis}",
            source_type=source_type,
            title=title,
            created_at=datetime.fromtimestamp(millis / 1000, tz=timezone.utc),
        )

    def name(self, source_type: SourceType, title: str) -> str:
        return self.create(source_type, title).id

    __call__ = name


def name_collection(source_type: SourceType, title: str, *, clock: Callable[[], int] = _unix_millis) -> str:
    """One-off id using a throwaway namer (no cross-call monotonicity)."""
    return CollectionNamer(clock).name(source_type, title)
