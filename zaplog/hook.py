"""A core wrapper that runs user callbacks for every logged entry."""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence

from zaplog.entry import CheckedEntry, Entry, Level, level_of
from zaplog.errors import combine_errors
from zaplog.field import Field

Hook = Callable[[Entry], None]


class HookedCore:
    """Wraps a core and calls hooks each time an entry is written."""

    def __init__(self, core: Any, funcs: Sequence[Hook]) -> None:
        self.core = core
        self.funcs: List[Hook] = list(funcs)

    def level(self) -> Level:
        """The minimum level of the wrapped core."""
        return level_of(self.core)

    def enabled(self, level: Level) -> bool:
        """Whether the wrapped core logs ``level``."""
        return self.core.enabled(level)

    def check(self, ent: Entry, ce: Optional[CheckedEntry]) -> Optional[CheckedEntry]:
        """Let the wrapped core decide, then register the hooks alongside it."""
        downstream = self.core.check(ent, ce)
        if downstream is not None:
            return downstream.add_core(self)
        return ce

    def with_fields(self, fields: Sequence[Field]) -> "HookedCore":
        """Return a hooked copy of the wrapped core with added context."""
        return HookedCore(self.core.with_fields(fields), self.funcs)

    def write(self, ent: Entry, fields: Sequence[Field]) -> None:
        """Run every hook; failures are combined and raised after all have run."""
        failures = []
        for func in self.funcs:
            try:
                func(ent)
            except Exception as exc:
                failures.append(exc)
        err = combine_errors(*failures)
        if err is not None:
            raise err

    def sync(self) -> None:
        """Sync the wrapped core."""
        self.core.sync()


def register_hooks(core: Any, *args: Hook) -> HookedCore:
    """Wrap ``core`` so that each hook is called with every logged entry."""
    return HookedCore(core, args)