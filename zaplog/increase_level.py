"""A core wrapper that raises the minimum level of another core."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from zaplog.entry import MAX_LEVEL, MIN_LEVEL, CheckedEntry, Entry, Level, level_of
from zaplog.field import Field

_DESCENDING_LEVELS = sorted(
    (lvl for lvl in Level if MIN_LEVEL <= lvl <= MAX_LEVEL), reverse=True
)


class LevelFilterCore:
    """Filters entries by a level before handing them to the wrapped core."""

    def __init__(self, core: Any, level: Any) -> None:
        self.core = core
        self._level = level

    def enabled(self, level: Level) -> bool:
        """Whether the filter lets ``level`` through."""
        return self._level.enabled(level)

    def level(self) -> Level:
        """The minimum level the filter lets through."""
        return level_of(self._level)

    def with_fields(self, fields: Sequence[Field]) -> "LevelFilterCore":
        """Return a filtered copy of the wrapped core with added context."""
        return LevelFilterCore(self.core.with_fields(fields), self._level)

    def check(self, ent: Entry, ce: Optional[CheckedEntry]) -> Optional[CheckedEntry]:
        """Drop entries below the filter's level, otherwise ask the wrapped core."""
        if not self.enabled(ent.level):
            return ce
        return self.core.check(ent, ce)

    def write(self, ent: Entry, fields: Sequence[Field]) -> None:
        """Write through to the wrapped core."""
        self.core.write(ent, fields)

    def sync(self) -> None:
        """Sync the wrapped core."""
        self.core.sync()


def new_increase_level_core(core: Any, level: Any) -> LevelFilterCore:
    """Wrap ``core`` so that only entries enabled by ``level`` are logged.

    Raises ValueError if ``level`` would let through a level that the core
    does not log, since the level can only be increased.
    """
    for lvl in _DESCENDING_LEVELS:
        if not core.enabled(lvl) and level.enabled(lvl):
            raise ValueError(
                f'invalid increase level, as level "{lvl}" is allowed by '
                "increased level, but not by existing core"
            )
    return LevelFilterCore(core, level)