"""Principal resolution helpers.

The trackers take the acting principal as an explicit argument. These helpers
turn whatever identity a Litestar connection carries into that argument, falling
back to the system principal instead of failing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar_bpm.core.types import SYSTEM_PRINCIPAL

if TYPE_CHECKING:
    from litestar.connection import ASGIConnection

__all__ = ["normalize_principal", "principal_from_connection"]

logger = logging.getLogger(__name__)

_NAME_ATTRIBUTES = ("username", "name", "id")


def normalize_principal(principal: str | None, default: str = SYSTEM_PRINCIPAL) -> str:
    """Return ``principal``, or ``default`` when it is missing or blank.

    Args:
        principal: The caller-supplied principal.
        default: The principal to record when none is available.

    Returns:
        A non-blank principal name.
    """
    if principal is None or not principal.strip():
        return default
    return principal


def _name_of(user: Any) -> str | None:
    if isinstance(user, str):
        return user
    if isinstance(user, dict):
        for key in _NAME_ATTRIBUTES:
            value = user.get(key)
            if value is not None:
                return str(value)
        return None
    for attribute in _NAME_ATTRIBUTES:
        value = getattr(user, attribute, None)
        if value is not None:
            return str(value)
    return None


def principal_from_connection(connection: ASGIConnection[Any, Any, Any, Any], default: str = SYSTEM_PRINCIPAL) -> str:
    """Resolve the principal of the authenticated user on a connection.

    The user is read from the ASGI scope, where Litestar's authentication
    middleware stores it. A missing user, a user without a usable name, or a
    failure while inspecting the user all resolve to ``default``.

    Args:
        connection: The current request or websocket connection.
        default: The principal to use when no identity is available.

    Returns:
        The resolved principal name.
    """
    try:
        user = connection.scope.get("user")
        name = _name_of(user) if user is not None else None
    except Exception:  # noqa: BLE001
        logger.warning("Could not resolve principal from connection, using %r", default, exc_info=True)
        return default
    return normalize_principal(name, default)
