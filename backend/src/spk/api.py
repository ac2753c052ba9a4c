"""
Handler boundary shared by every Lambda entry point.

Resolves the actor, runs the command and turns domain errors into typed JSON
error responses, so no WorkOrderError leaves a handler uncaught.
"""
import functools

from .auth import get_actor
from .errors import ValidationError, WorkOrderError
from .logging import logger, log_event
from .service import get_service
from .utils import format_response, get_path_param


def api_handler(func):
    """
    Wrap handler(event, context, actor) as a Lambda handler(event, context).
    The wrapped function returns an API Gateway response dict.
    """
    @functools.wraps(func)
    def wrapper(event, context):
        log_event(event)

        actor = get_actor(event)
        if actor is None:
            return format_response(401, {'error': 'UNAUTHENTICATED', 'message': 'Authentication required'})

        try:
            retry_parked_notifications()
            return func(event, context, actor)
        except WorkOrderError as e:
            return format_response(e.status_code, e.to_dict())
        except Exception:
            logger.exception(f"Unhandled error in {func.__module__}")
            return format_response(500, {'error': 'INTERNAL_ERROR', 'message': 'Internal Server Error'})

    return wrapper


def retry_parked_notifications() -> None:
    """Flush notifications parked by earlier invocations of this container."""
    notifier = get_service().notifier
    if not notifier.pending_retries:
        return
    try:
        notifier.retry_failed()
    except Exception as e:
        logger.warning(f"Retrying parked notifications failed: {e}")


def require_path_param(event: dict, name: str) -> str:
    value = get_path_param(event, name)
    if not value:
        raise ValidationError(f'Missing {name}')
    return value
