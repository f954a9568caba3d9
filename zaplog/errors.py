"""Combining errors and encoding them into structured log fields."""

from __future__ import annotations

from typing import Any, Callable, Iterable, List, Optional


class MultiError(Exception):
    """An error made of several other errors."""

    def __init__(self, causes: Iterable[BaseException]) -> None:
        self._causes = tuple(causes)
        super().__init__(str(self))

    def errors(self) -> List[BaseException]:
        """Return the errors this error is made of."""
        return list(self._causes)

    def __str__(self) -> str:
        return "; ".join(str(err) for err in self._causes)


def combine_errors(*args: Optional[BaseException]) -> Optional[BaseException]:
    """Combine errors into one, skipping None and flattening MultiErrors.

    Returns None if nothing is left, the error itself if only one is left.
    """
    present = [err for err in args if err is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    flat: List[BaseException] = []
    for err in present:
        if isinstance(err, MultiError):
            flat.extend(err.errors())
        else:
            flat.append(err)
    return MultiError(flat)


def append_error(
    left: Optional[BaseException], right: Optional[BaseException]
) -> Optional[BaseException]:
    """Append one error to another, as combine_errors does for two."""
    return combine_errors(left, right)


def _guarded(func: Callable[..., Any], *args: Any) -> Any:
    try:
        return func(*args)
    except Exception as exc:
        raise RuntimeError(f"PANIC={exc}") from exc


def encode_error(key: str, err: Optional[BaseException], enc: Any) -> None:
    """Add an error to an object encoder.

    Adds ``key`` with the message; ``key + "Causes"`` if the error exposes an
    ``errors()`` method; ``key + "Verbose"`` if its "+v" format differs from
    its message. Failures inside the error's own methods raise RuntimeError
    with a message starting with ``PANIC=``.
    """
    if err is None:
        enc.add_string(key, "<nil>")
        return

    basic = _guarded(str, err)
    enc.add_string(key, basic)

    group = getattr(err, "errors", None)
    if callable(group):
        causes = _guarded(group)
        enc.add_array(key + "Causes", _ErrArray(causes))
        return

    if type(err).__format__ is not object.__format__:
        verbose = _guarded(format, err, "+v")
        if verbose != basic:
            enc.add_string(key + "Verbose", verbose)


class _ErrArray:
    """Encodes a list of errors as an array of error objects."""

    def __init__(self, errs: Iterable[Optional[BaseException]]) -> None:
        self._errs = list(errs)

    def marshal_log_array(self, arr: Any) -> None:
        for err in self._errs:
            if err is None:
                continue
            arr.append_object(_ErrArrayElem(err))


class _ErrArrayElem:
    """Encodes one error as ``{"error": ...}``."""

    def __init__(self, err: BaseException) -> None:
        self.err = err

    def marshal_log_array(self, arr: Any) -> None:
        arr.append_object(self)

    def marshal_log_object(self, enc: Any) -> None:
        encode_error("error", self.err, enc)