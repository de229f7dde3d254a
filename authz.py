import logging

from errors import AuthorizationError

logger = logging.getLogger(__name__)


def is_owner(resource_owner_id: str, caller_id: str) -> bool:
    return bool(caller_id) and resource_owner_id == caller_id


def require_owner(resource_owner_id: str, caller_id: str, action: str) -> None:
    """
    Raise AuthorizationError unless `caller_id` owns the resource.
    `action` completes the message, e.g. "edit this donation".
    """
    if not is_owner(resource_owner_id, caller_id):
        logger.warning(
            "Denied %r: caller %s is not owner %s", action, caller_id, resource_owner_id
        )
        raise AuthorizationError(f"You do not have permission to {action}")
