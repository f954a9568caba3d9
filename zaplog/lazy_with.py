"""A core wrapper that adds context fields only once the core is used."""

from __future__ import annotations

import threading
from typing import Any, List, Optional, Sequence

from zaplog.entry import CheckedEntry, Entry, Level
from zaplog.field import Field


class LazyWithCore:
    """Defers adding fields to a core until it is written to or chained."""

    def __init__(self, core: Any, fields: Sequence[Field]) -> None:
        self._original = core
        self._fields: List[Field] = list(fields)
        self._core: Any = None
        self._lock = threading.Lock()

    def _materialize(self) -> Any:
        core = self._core
        if core is None:
            with self._lock:
                if self._core is None:
                    self._core = self._original.with_fields(self._fields)
                core = self._core
        return core

    def with_fields(self, fields: Sequence[Field]) -> Any:
        """Return the materialized core with further fields added."""
        return self._materialize().with_fields(fields)

    def check(self, ent: Entry, ce: Optional[CheckedEntry]) -> Optional[CheckedEntry]:
        """Check without materializing when the level is not enabled."""
        if not self._original.enabled(ent.level):
            return ce
        return self._materialize().check(ent, ce)

    def enabled(self, level: Level) -> bool:
        """Whether the wrapped core logs ``level``."""
        return self._original.enabled(level)

    def write(self, ent: Entry, fields: Sequence[Field]) -> None:
        """Write through the materialized core."""
        self._materialize().write(ent, fields)

    def sync(self) -> None:
        """Sync the materialized core."""
        self._materialize().sync()


def new_lazy_with(core: Any, fields: Sequence[Field]) -> LazyWithCore:
    """Wrap ``core`` so that ``fields`` are encoded only when actually needed."""
    return LazyWithCore(core, fields)