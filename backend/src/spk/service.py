"""
Work-order service: the command surface of the core.

Each command loads the order, validates actor and state, writes with an
optimistic version check and only then emits its notification. A lost race
(VersionConflict) surfaces as InvalidTransition because the state the
command was validated against has moved on.
"""
import datetime
import uuid
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .auth import Actor
from .config import config
from .errors import (
    InvalidDeadline, InvalidState, InvalidTransition, NotFound, Unauthorized,
    ValidationError, VersionConflict,
)
from .lifecycle import check_transition
from .logging import logger
from .models import (
    ADMIN_RECIPIENT, NotificationKind, WorkOrder, WorkOrderStatus,
)
from .notifications import Notifier
from .penalty import calculate_settlement
from .store import WorkOrderStore
from .utils import parse_timestamp, to_decimal, utc_now

EDITABLE_FIELDS = frozenset([
    'title', 'description', 'value', 'deadline', 'requirements', 'assigned_worker_id',
])

# Events emitted after each successful transition: to_state -> (kind, recipient is admin)
TRANSITION_EVENTS = {
    WorkOrderStatus.PENDING_APPROVAL: (NotificationKind.WORK_ORDER_SENT, False),
    WorkOrderStatus.ACTIVE: (NotificationKind.WORK_ORDER_ACCEPTED, True),
    WorkOrderStatus.REJECTED: (NotificationKind.WORK_ORDER_REJECTED, True),
    WorkOrderStatus.COMPLETION_REQUESTED: (NotificationKind.COMPLETION_REQUESTED, True),
    WorkOrderStatus.DONE_ON_TIME: (NotificationKind.COMPLETION_APPROVED, False),
    WorkOrderStatus.DONE_LATE: (NotificationKind.COMPLETION_APPROVED, False),
}


def require_admin(actor: Actor, order_id: str = None) -> None:
    if not actor.is_admin:
        logger.warning(f"Unauthorized: {actor.role} {actor.actor_id} attempted an admin-only command")
        raise Unauthorized('Admin role required', order_id)


def require_worker(actor: Actor) -> None:
    if not actor.is_worker:
        logger.warning(f"Unauthorized: {actor.role} {actor.actor_id} attempted a worker-only command")
        raise Unauthorized('Worker role required')


def clean_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field_name} is required')
    return value.strip()


def clean_value(value: Any, field_name: str = 'value') -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f'{field_name} must be a number')
    if amount <= 0:
        raise ValidationError(f'{field_name} must be a positive number')
    return amount


def clean_deadline(value: Any, now: datetime.datetime) -> datetime.datetime:
    try:
        deadline = parse_timestamp(value)
    except ValueError:
        raise ValidationError('Invalid deadline format')
    if deadline is None:
        raise ValidationError('deadline is required')
    if deadline <= now:
        raise ValidationError('Deadline must be a valid future date')
    return deadline


def clean_requirements(value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ValidationError('requirements must be a list of strings')
    return [str(req).strip() for req in value if req is not None and str(req).strip()]


class WorkOrderService:
    """Lifecycle commands over a WorkOrderStore."""

    def __init__(
        self,
        store: WorkOrderStore,
        notifier: Notifier = None,
        clock: Callable[[], datetime.datetime] = utc_now
    ):
        self.store = store
        self.notifier = notifier or Notifier()
        self.clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_work_orders(
        self,
        actor: Actor,
        title: str,
        description: str,
        deadline: Any,
        requirements: Optional[Sequence[str]],
        assignments: Sequence[Tuple[str, Any]]
    ) -> List[WorkOrder]:
        """
        Fan a request out into one independent order per (worker_id, value).
        Everything is validated before anything is written, and the store
        persists the batch atomically.
        """
        require_admin(actor)
        now = self.clock()

        title = clean_text(title, 'Title')
        description = clean_text(description, 'Description')
        deadline = clean_deadline(deadline, now)
        requirements = clean_requirements(requirements)

        if not assignments:
            raise ValidationError('At least one worker assignment is required')

        seen = set()
        validated = []
        for worker_id, value in assignments:
            if not isinstance(worker_id, str) or not worker_id:
                raise ValidationError('Invalid worker ID')
            if worker_id in seen:
                raise ValidationError(f'Worker {worker_id} is named more than once')
            seen.add(worker_id)
            amount = clean_value(value, f'Value for worker {worker_id}')
            if not self.store.worker_exists(worker_id):
                raise NotFound(f'Worker {worker_id} not found')
            validated.append((worker_id, amount))

        batch_id = str(uuid.uuid4())
        orders = [
            WorkOrder(
                id=str(uuid.uuid4()),
                title=title,
                description=description,
                assigned_worker_id=worker_id,
                value=amount,
                deadline=deadline,
                requirements=list(requirements),
                created_at=now,
                updated_at=now,
                batch_id=batch_id if len(validated) > 1 else None,
                created_by=actor.actor_id,
            )
            for worker_id, amount in validated
        ]

        try:
            created = self.store.create_many(orders)
        except VersionConflict:
            raise InvalidTransition('Work order batch collided with existing orders')

        logger.info(f"Created {len(created)} work orders (batch {batch_id}) by {actor.actor_id}")
        return created

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_work_order(self, order_id: str, actor: Actor) -> WorkOrder:
        order = self.store.load(order_id)
        if actor.is_worker and order.assigned_worker_id != actor.actor_id:
            logger.warning(f"Unauthorized: worker {actor.actor_id} read work order {order_id}")
            raise Unauthorized('You are not assigned to this work order', order_id)
        return order

    def list_work_orders(self, actor: Actor, statuses: Iterable[str] = None) -> List[WorkOrder]:
        if actor.is_admin:
            orders = self.store.list_orders(statuses=statuses)
        else:
            orders = self.store.list_orders(worker_id=actor.actor_id, statuses=statuses)
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def send_for_approval(self, order_id: str, actor: Actor) -> WorkOrder:
        return self._transition(order_id, actor, WorkOrderStatus.PENDING_APPROVAL)

    def respond_to_approval(self, order_id: str, actor: Actor, accept: bool) -> WorkOrder:
        target = WorkOrderStatus.ACTIVE if accept else WorkOrderStatus.REJECTED
        return self._transition(order_id, actor, target)

    def request_completion(self, order_id: str, actor: Actor) -> WorkOrder:
        return self._transition(order_id, actor, WorkOrderStatus.COMPLETION_REQUESTED)

    def approve_completion(
        self,
        order_id: str,
        actor: Actor,
        now: datetime.datetime = None
    ) -> WorkOrder:
        """
        Settle a COMPLETION_REQUESTED order. The approval timestamp is the
        completion time the penalty is computed from.
        """
        now = now or self.clock()
        order = self.store.load(order_id)
        if order.state != WorkOrderStatus.COMPLETION_REQUESTED:
            # Let the table decide between Unauthorized and InvalidTransition
            check_transition(order, actor, WorkOrderStatus.DONE_ON_TIME)

        terminal_state, settlement = calculate_settlement(order.deadline, now, order.value)
        check_transition(order, actor, terminal_state)

        updated = self._commit(order.evolve(
            state=terminal_state,
            completed_at=now,
            updated_at=now,
            settlement=settlement,
        ))
        logger.info(
            f"Work order {order_id} settled as {terminal_state}: days_late={settlement.days_late} "
            f"penalty={settlement.penalty_amount} final={settlement.final_value}"
        )
        self._emit_transition_event(updated)
        return updated

    def _transition(self, order_id: str, actor: Actor, to_state: str) -> WorkOrder:
        order = self.store.load(order_id)
        check_transition(order, actor, to_state)

        updated = self._commit(order.evolve(state=to_state, updated_at=self.clock()))
        logger.info(f"Work order {order_id}: {order.state} -> {to_state} by {actor.role} {actor.actor_id}")
        self._emit_transition_event(updated)
        return updated

    def _commit(self, order: WorkOrder) -> WorkOrder:
        try:
            return self.store.save(order)
        except VersionConflict:
            logger.info(f"Invalid transition: work order {order.id} changed concurrently (version {order.version})")
            raise InvalidTransition('Work order was modified concurrently; reload and retry', order.id)

    def _emit_transition_event(self, order: WorkOrder) -> None:
        kind, to_admin = TRANSITION_EVENTS[order.state]
        recipient = ADMIN_RECIPIENT if to_admin else order.assigned_worker_id
        self._notify(recipient, kind, order.id)

    def _notify(self, recipient_id: str, kind: str, order_id: str) -> None:
        # Runs after the write is committed; nothing here may undo it
        try:
            self.notifier.notify(recipient_id, kind, order_id)
        except Exception as e:
            logger.warning(f"Notification {kind} for work order {order_id} failed: {e}")

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_work_order(self, order_id: str, actor: Actor, changes: Dict[str, Any]) -> WorkOrder:
        """
        Edit a DRAFT order. On any later non-terminal state only a deadline
        change is accepted, and it follows extend_deadline rules.
        """
        require_admin(actor, order_id)
        if not changes:
            raise ValidationError('No changes provided', order_id)
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}", order_id)

        order = self.store.load(order_id)
        if order.state != WorkOrderStatus.DRAFT:
            if set(changes) == {'deadline'}:
                return self.extend_deadline(order_id, actor, changes['deadline'])
            raise InvalidState(f'Work order is {order.state}; only drafts can be edited', order_id)

        now = self.clock()
        fields = {}
        if 'title' in changes:
            fields['title'] = clean_text(changes['title'], 'Title')
        if 'description' in changes:
            fields['description'] = clean_text(changes['description'], 'Description')
        if 'value' in changes:
            fields['value'] = clean_value(changes['value'])
        if 'deadline' in changes:
            fields['deadline'] = clean_deadline(changes['deadline'], now)
        if 'requirements' in changes:
            fields['requirements'] = clean_requirements(changes['requirements'])
        if 'assigned_worker_id' in changes:
            worker_id = changes['assigned_worker_id']
            if not isinstance(worker_id, str):
                raise ValidationError('Invalid worker ID', order_id)
            if not worker_id or not self.store.worker_exists(worker_id):
                raise NotFound(f'Worker {worker_id} not found', order_id)
            fields['assigned_worker_id'] = worker_id

        updated = self._commit(order.evolve(updated_at=now, **fields))
        logger.info(f"Work order {order_id} updated: {sorted(fields)}")

        if updated.assigned_worker_id != order.assigned_worker_id:
            self._notify(updated.assigned_worker_id, NotificationKind.WORK_ORDER_ASSIGNED, order_id)
        return updated

    def extend_deadline(self, order_id: str, actor: Actor, new_deadline: Any) -> WorkOrder:
        require_admin(actor, order_id)
        try:
            deadline = parse_timestamp(new_deadline)
        except ValueError:
            raise ValidationError('Invalid deadline format', order_id)
        if deadline is None:
            raise ValidationError('New deadline is required', order_id)

        order = self.store.load(order_id)
        if order.is_terminal:
            raise InvalidState(f'Work order is {order.state}; deadline can no longer change', order_id)
        if deadline <= order.deadline:
            raise InvalidDeadline('New deadline must be later than current deadline', order_id)

        updated = self._commit(order.evolve(deadline=deadline, updated_at=self.clock()))
        logger.info(f"Work order {order_id} deadline extended to {deadline.isoformat()}")
        if order.state != WorkOrderStatus.DRAFT:
            self._notify(order.assigned_worker_id, NotificationKind.DEADLINE_EXTENDED, order_id)
        return updated

    def delete_work_order(self, order_id: str, actor: Actor) -> WorkOrder:
        require_admin(actor, order_id)
        order = self.store.load(order_id)
        if order.state != WorkOrderStatus.DRAFT:
            raise InvalidState(f'Work order is {order.state}; only drafts can be deleted', order_id)
        try:
            self.store.delete(order)
        except VersionConflict:
            raise InvalidTransition('Work order was modified concurrently; reload and retry', order_id)
        logger.info(f"Work order {order_id} deleted by {actor.actor_id}")
        return order


_store = None
_service = None


def build_store() -> WorkOrderStore:
    """Store selected by STORAGE_BACKEND."""
    if config.STORAGE_BACKEND == 'memory':
        from .store import InMemoryWorkOrderStore
        return InMemoryWorkOrderStore()
    from .dynamo import DynamoWorkOrderStore
    return DynamoWorkOrderStore()


def build_notifier() -> Notifier:
    if config.STORAGE_BACKEND == 'memory':
        from .notifications import RecordingNotifier
        return RecordingNotifier()
    return Notifier()


def get_store() -> WorkOrderStore:
    """Get or create the process-wide store."""
    global _store
    if _store is None:
        _store = build_store()
    return _store


def get_service() -> WorkOrderService:
    """Get or create the process-wide service used by the handlers."""
    global _service
    if _service is None:
        _service = WorkOrderService(get_store(), build_notifier())
    return _service


def set_service(service: Optional[WorkOrderService]) -> None:
    """Replace the process-wide service and its store (tests and local wiring)."""
    global _service, _store
    _service = service
    _store = service.store if service is not None else None
