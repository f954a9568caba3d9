"""Structured, leveled logging core: entries, fields, JSON and console
encoders, cores and core wrappers, and a buffered write syncer."""

__version__ = "0.1.0"
__all__ = [
    "buffered_write_syncer",
    "clock",
    "console_encoder",
    "core",
    "encoder",
    "entry",
    "errors",
    "field",
    "hook",
    "increase_level",
    "json_encoder",
    "lazy_with",
]