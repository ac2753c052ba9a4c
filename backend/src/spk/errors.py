"""
Error kinds raised by the work-order core.

Every expected failure of a command is a WorkOrderError subclass. Handlers
turn them into JSON error responses; nothing in this hierarchy is fatal.
"""
from typing import Any, Dict


class WorkOrderError(Exception):
    """Base class for expected, per-command failures."""
    code = 'WORK_ORDER_ERROR'
    status_code = 400

    def __init__(self, message: str, order_id: str = None):
        super().__init__(message)
        self.message = message
        self.order_id = order_id

    def to_dict(self) -> Dict[str, Any]:
        body = {'error': self.code, 'message': self.message}
        if self.order_id:
            body['workOrderId'] = self.order_id
        return body


class ValidationError(WorkOrderError):
    """Malformed input: empty title, non-positive value, past deadline."""
    code = 'VALIDATION_ERROR'
    status_code = 400


class InvalidDeadline(WorkOrderError):
    """New deadline is not strictly later than the current one."""
    code = 'INVALID_DEADLINE'
    status_code = 400


class Unauthorized(WorkOrderError):
    """Actor is not allowed to perform the command on this order."""
    code = 'UNAUTHORIZED'
    status_code = 403


class NotFound(WorkOrderError):
    """Unknown work order or worker id."""
    code = 'NOT_FOUND'
    status_code = 404


class InvalidTransition(WorkOrderError):
    """Transition not legal from the current state, or the state moved on."""
    code = 'INVALID_TRANSITION'
    status_code = 409


class InvalidState(WorkOrderError):
    """Edit attempted on an order that is no longer a draft."""
    code = 'INVALID_STATE'
    status_code = 409


class NotEligible(WorkOrderError):
    """Payment operation on an order that has not been settled."""
    code = 'NOT_ELIGIBLE'
    status_code = 409


class VersionConflict(Exception):
    """Raised by a store when the expected version no longer matches."""

    def __init__(self, key: str, expected_version: int):
        super().__init__(f"Version conflict on {key} (expected version {expected_version})")
        self.key = key
        self.expected_version = expected_version
