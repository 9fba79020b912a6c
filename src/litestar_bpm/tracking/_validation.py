"""Argument normalization shared by the trackers."""

from __future__ import annotations

from litestar_bpm.exceptions import InvalidInputError

__all__ = ["blank_to_none", "require_identifier"]


def blank_to_none(value: str | None) -> str | None:
    """Treat empty and all-whitespace strings as absent."""
    if value is None or not value.strip():
        return None
    return value


def require_identifier(field: str, value: str | None) -> str:
    """Return ``value`` unchanged, or raise if it is missing or blank.

    Raises:
        InvalidInputError: If ``value`` is ``None``, empty or all whitespace.
    """
    if blank_to_none(value) is None:
        raise InvalidInputError(field)
    return value  # type: ignore[return-value]
