"""Human-readable duration strings (``500ms``, ``1s``, ``2h``, ``10d``)."""

from __future__ import annotations

from datetime import timedelta

from .errors import InvalidDuration

# Unit suffix -> milliseconds
_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 1000 * 60,
    "h": 1000 * 60 * 60,
    "d": 1000 * 60 * 60 * 24,
}

_MAX_MS = timedelta.max // timedelta(milliseconds=1)


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as ``"5s"`` into a timedelta.

    The grammar is an unsigned integer followed by one of ``ms``, ``s``,
    ``m``, ``h`` or ``d``, with surrounding whitespace ignored. A bare
    ``0`` is accepted; any other unit-less number is rejected.

    Raises:
        InvalidDuration: on any malformed input, or when the result does
            not fit in a timedelta.
    """
    text = value.strip()

    # Split after the last ASCII digit: magnitude, then unit
    index = len(text)
    while index > 0 and not ("0" <= text[index - 1] <= "9"):
        index -= 1
    if index == 0:
        raise InvalidDuration(value)

    magnitude_text, unit = text[:index], text[index:]
    if not all("0" <= c <= "9" for c in magnitude_text):
        raise InvalidDuration(value)
    magnitude = int(magnitude_text)

    if unit == "":
        if magnitude != 0:
            raise InvalidDuration(value)
        return timedelta(0)

    try:
        factor = _UNIT_MS[unit]
    except KeyError:
        raise InvalidDuration(value) from None

    milliseconds = magnitude * factor
    if milliseconds > _MAX_MS:
        raise InvalidDuration(value)
    return timedelta(milliseconds=milliseconds)


def format_duration(value: timedelta) -> str:
    """Render a duration compactly for diagnostics, e.g. ``500ms`` or ``1.5s``."""
    milliseconds = value // timedelta(milliseconds=1)
    if milliseconds < 1000:
        return f"{milliseconds}ms"
    if milliseconds % 1000 == 0:
        return f"{milliseconds // 1000}s"
    return f"{milliseconds / 1000}s"
