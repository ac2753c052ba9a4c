"""
Work-order lifecycle rules.

The transition table is the single source of truth for which
(actor role, from state, to state) triples are legal. check_transition()
is pure: it raises and never touches storage.
"""
from dataclasses import dataclass
from typing import FrozenSet, Tuple

from .auth import Actor
from .errors import InvalidTransition, Unauthorized, ValidationError
from .logging import logger
from .models import Role, WorkOrder, WorkOrderStatus as S


@dataclass(frozen=True)
class TransitionRule:
    role: str
    from_state: str
    to_state: str
    # Worker transitions are only open to the worker the order is assigned to
    assignee_only: bool = False


TRANSITION_RULES: Tuple[TransitionRule, ...] = (
    TransitionRule(Role.ADMIN, S.DRAFT, S.PENDING_APPROVAL),
    TransitionRule(Role.WORKER, S.PENDING_APPROVAL, S.ACTIVE, assignee_only=True),
    TransitionRule(Role.WORKER, S.PENDING_APPROVAL, S.REJECTED, assignee_only=True),
    TransitionRule(Role.WORKER, S.ACTIVE, S.COMPLETION_REQUESTED, assignee_only=True),
    TransitionRule(Role.ADMIN, S.COMPLETION_REQUESTED, S.DONE_ON_TIME),
    TransitionRule(Role.ADMIN, S.COMPLETION_REQUESTED, S.DONE_LATE),
)

LEGAL_TRIPLES: FrozenSet[Tuple[str, str, str]] = frozenset(
    (rule.role, rule.from_state, rule.to_state) for rule in TRANSITION_RULES
)


def find_rule(from_state: str, to_state: str) -> TransitionRule:
    for rule in TRANSITION_RULES:
        if rule.from_state == from_state and rule.to_state == to_state:
            return rule
    return None


def is_legal(role: str, from_state: str, to_state: str) -> bool:
    return (role, from_state, to_state) in LEGAL_TRIPLES


def check_transition(order: WorkOrder, actor: Actor, to_state: str) -> TransitionRule:
    """
    Validate that actor may move order from its current state to to_state.

    Raises:
        Unauthorized: a worker acting on someone else's order, or the
            (from, to) edge belongs to the other role
        InvalidTransition: no rule exists for (from, to)
        ValidationError: the DRAFT order has no assigned worker
    """
    from_state = order.state

    if actor.is_worker and actor.actor_id != order.assigned_worker_id:
        logger.warning(
            f"Unauthorized: worker {actor.actor_id} is not assigned to work order {order.id}"
        )
        raise Unauthorized('You are not assigned to this work order', order.id)

    rule = find_rule(from_state, to_state)
    if rule is None:
        logger.info(
            f"Invalid transition {from_state} -> {to_state} on work order {order.id} "
            f"requested by {actor.role} {actor.actor_id}"
        )
        raise InvalidTransition(
            f'Cannot move work order from {from_state} to {to_state}', order.id
        )

    if rule.role != actor.role:
        logger.warning(
            f"Unauthorized: {actor.role} {actor.actor_id} attempted {rule.role}-only "
            f"transition {from_state} -> {to_state} on work order {order.id}"
        )
        raise Unauthorized(f'Only {rule.role} may perform this transition', order.id)

    if rule.from_state == S.DRAFT and not order.assigned_worker_id:
        raise ValidationError('No worker assigned to this work order', order.id)

    return rule
