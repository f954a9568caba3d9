"""Cores: the minimal logger interface, a no-op core and an I/O core."""

from __future__ import annotations

from typing import Any, FrozenSet, Optional, Sequence, Tuple

from zaplog.entry import CheckedEntry, Entry, Level, add_core, level_of
from zaplog.field import Field, add_fields


def _sync_output(out: Any) -> None:
    sync = getattr(out, "sync", None)
    if callable(sync):
        sync()
        return
    flush = getattr(out, "flush", None)
    if callable(flush):
        flush()


def _require_fields(fields: Sequence[Field]) -> list:
    checked = list(fields)
    for field in checked:
        if not isinstance(field, Field):
            raise TypeError(f"expected Field, got {type(field).__name__}")
    return checked


class NopCore:
    """A core that logs nothing: it enables no levels and has no outputs."""

    _enabled_levels: FrozenSet[Level] = frozenset()
    _outputs: Tuple[Any, ...] = ()

    def enabled(self, level: Level) -> bool:
        """Whether ``level`` is enabled; never true for a no-op core."""
        return level in self._enabled_levels

    def with_fields(self, fields: Sequence[Field]) -> "NopCore":
        """Validate ``fields`` and return this core unchanged."""
        _require_fields(fields)
        return self

    def check(self, ent: Entry, ce: Optional[CheckedEntry]) -> Optional[CheckedEntry]:
        """Return ``ce`` unchanged, adding no core to it."""
        if self.enabled(ent.level):
            return add_core(ce, ent, self)
        return ce

    def write(self, ent: Entry, fields: Sequence[Field]) -> None:
        """Discard the entry; there are no outputs to write to."""
        checked = _require_fields(fields)
        for out in self._outputs:
            out.write(repr((ent, checked)).encode("utf-8"))

    def sync(self) -> None:
        """Sync every output; a no-op core has none."""
        for out in self._outputs:
            _sync_output(out)


def new_nop_core() -> NopCore:
    """Return a no-op core."""
    return NopCore()


class IOCore:
    """A core that encodes entries and writes them to a write syncer."""

    def __init__(self, enc: Any, out: Any, enab: Any) -> None:
        self.enc = enc
        self.out = out
        self._enabler = enab

    def level(self) -> Level:
        """The minimum level this core logs."""
        return level_of(self._enabler)

    def enabled(self, level: Level) -> bool:
        """Whether entries at ``level`` are logged."""
        return self._enabler.enabled(level)

    def with_fields(self, fields: Sequence[Field]) -> "IOCore":
        """Return a copy of this core with ``fields`` added to its context."""
        clone = IOCore(self.enc.clone(), self.out, self._enabler)
        add_fields(clone.enc, fields)
        return clone

    def check(self, ent: Entry, ce: Optional[CheckedEntry]) -> Optional[CheckedEntry]:
        """Add this core to ``ce`` if the entry's level is enabled."""
        if self.enabled(ent.level):
            return add_core(ce, ent, self)
        return ce

    def write(self, ent: Entry, fields: Sequence[Field]) -> None:
        """Encode the entry and fields and write them out.

        Entries above ERROR level also sync the output, ignoring sync errors.
        """
        encoded = self.enc.encode_entry(ent, list(fields))
        if isinstance(encoded, str):
            encoded = encoded.encode("utf-8")
        self.out.write(bytes(encoded))
        if ent.level > Level.ERROR:
            try:
                self.sync()
            except Exception:
                pass

    def sync(self) -> None:
        """Sync the underlying output."""
        _sync_output(self.out)


def new_core(enc: Any, ws: Any, enab: Any) -> IOCore:
    """Create a core writing entries encoded by ``enc`` to ``ws``."""
    return IOCore(enc, ws, enab)