"""Admin authorization checks.

Admin-gated operations call ``require_admin`` before touching any state, so a
rejected caller leaves every record unchanged.
"""

import logging

from swapcore.errors import NotAuthorized

logger = logging.getLogger(__name__)


def require_admin(caller: str, admin: str, scope: str) -> None:
    """Raise NotAuthorized unless ``caller`` is the stored ``admin``.

    Args:
        caller: Account invoking the operation
        admin: Admin recorded on the pool or registry
        scope: Human-readable description of the guarded record
    """
    if caller != admin:
        logger.warning(f"Rejected admin operation on {scope} by {caller}")
        raise NotAuthorized(f"{caller} is not the admin of {scope}")
