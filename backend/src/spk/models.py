"""
Data models and status constants for the work-order (SPK) service.
Based on the lifecycle: Draft → Pending Approval → Active → Completion Requested → Done On Time / Done Late
"""
import datetime
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .utils import format_timestamp, parse_timestamp


class WorkOrderStatus:
    """Work-order lifecycle states."""
    DRAFT = 'DRAFT'
    PENDING_APPROVAL = 'PENDING_APPROVAL'
    ACTIVE = 'ACTIVE'
    REJECTED = 'REJECTED'
    COMPLETION_REQUESTED = 'COMPLETION_REQUESTED'
    DONE_ON_TIME = 'DONE_ON_TIME'
    DONE_LATE = 'DONE_LATE'
    CANCELLED = 'CANCELLED'


ALL_STATUSES = frozenset([
    WorkOrderStatus.DRAFT,
    WorkOrderStatus.PENDING_APPROVAL,
    WorkOrderStatus.ACTIVE,
    WorkOrderStatus.REJECTED,
    WorkOrderStatus.COMPLETION_REQUESTED,
    WorkOrderStatus.DONE_ON_TIME,
    WorkOrderStatus.DONE_LATE,
    WorkOrderStatus.CANCELLED,
])

TERMINAL_STATUSES = frozenset([
    WorkOrderStatus.REJECTED,
    WorkOrderStatus.DONE_ON_TIME,
    WorkOrderStatus.DONE_LATE,
    WorkOrderStatus.CANCELLED,
])

COMPLETED_STATUSES = frozenset([
    WorkOrderStatus.DONE_ON_TIME,
    WorkOrderStatus.DONE_LATE,
])


class PaymentStatus:
    """Payment ledger statuses."""
    PENDING = 'pending'
    PAID = 'paid'


PAYMENT_STATUSES = frozenset([PaymentStatus.PENDING, PaymentStatus.PAID])


class Role:
    """Actor roles supplied by the identity provider."""
    ADMIN = 'admin'
    WORKER = 'worker'


class NotificationKind:
    """Notification event kinds sent to the counterpart actor."""
    WORK_ORDER_ASSIGNED = 'WORK_ORDER_ASSIGNED'
    WORK_ORDER_SENT = 'WORK_ORDER_SENT'
    WORK_ORDER_ACCEPTED = 'WORK_ORDER_ACCEPTED'
    WORK_ORDER_REJECTED = 'WORK_ORDER_REJECTED'
    COMPLETION_REQUESTED = 'COMPLETION_REQUESTED'
    COMPLETION_APPROVED = 'COMPLETION_APPROVED'
    DEADLINE_EXTENDED = 'DEADLINE_EXTENDED'
    PAYMENT_STATUS_CHANGED = 'PAYMENT_STATUS_CHANGED'


# Recipient id used for notifications addressed to the admin side
ADMIN_RECIPIENT = 'admin'


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of the penalty calculation, persisted onto the order at approval."""
    original_value: Decimal
    days_late: int
    penalty_percentage: int
    penalty_amount: Decimal
    final_value: Decimal

    @property
    def on_time(self) -> bool:
        return self.days_late == 0

    def to_item(self) -> Dict[str, Any]:
        return {
            'originalValue': self.original_value,
            'daysLate': self.days_late,
            'penaltyPercentage': self.penalty_percentage,
            'penaltyAmount': self.penalty_amount,
            'finalValue': self.final_value,
        }

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'SettlementResult':
        return cls(
            original_value=Decimal(str(item['originalValue'])),
            days_late=int(item['daysLate']),
            penalty_percentage=int(item['penaltyPercentage']),
            penalty_amount=Decimal(str(item['penaltyAmount'])),
            final_value=Decimal(str(item['finalValue'])),
        )


@dataclass
class WorkOrder:
    """A single paid task assigned to exactly one worker."""
    id: str
    title: str
    description: str
    assigned_worker_id: str
    value: Decimal
    deadline: datetime.datetime
    created_at: datetime.datetime
    updated_at: datetime.datetime
    requirements: List[str] = field(default_factory=list)
    state: str = WorkOrderStatus.DRAFT
    completed_at: Optional[datetime.datetime] = None
    settlement: Optional[SettlementResult] = None
    batch_id: Optional[str] = None
    created_by: Optional[str] = None
    version: int = 0

    def __post_init__(self):
        if self.state not in ALL_STATUSES:
            raise ValueError(f"Unknown work order state: {self.state}")
        if (self.completed_at is not None) != (self.state in COMPLETED_STATUSES):
            raise ValueError(
                f"completed_at must be set exactly when the order is completed "
                f"(state={self.state}, completed_at={self.completed_at})"
            )

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.state in COMPLETED_STATUSES

    @property
    def payable_value(self) -> Decimal:
        """Amount owed to the worker: post-penalty once settled."""
        if self.settlement is not None:
            return self.settlement.final_value
        return self.value

    def evolve(self, **changes) -> 'WorkOrder':
        """Return a copy with the given fields replaced (re-validates invariants)."""
        return replace(self, **changes)

    def to_item(self) -> Dict[str, Any]:
        """Serialize to a DynamoDB item (camelCase keys, Decimal money, ISO timestamps)."""
        item = {
            'workOrderId': self.id,
            'title': self.title,
            'description': self.description,
            'workerId': self.assigned_worker_id,
            'value': self.value,
            'deadline': format_timestamp(self.deadline),
            'requirements': list(self.requirements),
            'status': self.state,
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
            'version': self.version,
        }
        if self.completed_at is not None:
            item['completedAt'] = format_timestamp(self.completed_at)
        if self.settlement is not None:
            item['settlement'] = self.settlement.to_item()
        if self.batch_id:
            item['batchId'] = self.batch_id
        if self.created_by:
            item['createdBy'] = self.created_by
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'WorkOrder':
        settlement = item.get('settlement')
        return cls(
            id=item['workOrderId'],
            title=item.get('title', ''),
            description=item.get('description', ''),
            assigned_worker_id=item.get('workerId'),
            value=Decimal(str(item['value'])),
            deadline=parse_timestamp(item['deadline']),
            requirements=list(item.get('requirements') or []),
            state=item.get('status', WorkOrderStatus.DRAFT),
            created_at=parse_timestamp(item['createdAt']),
            updated_at=parse_timestamp(item.get('updatedAt') or item['createdAt']),
            completed_at=parse_timestamp(item.get('completedAt')),
            settlement=SettlementResult.from_item(settlement) if settlement else None,
            batch_id=item.get('batchId'),
            created_by=item.get('createdBy'),
            version=int(item.get('version', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """API representation."""
        body = self.to_item()
        body['finalValue'] = self.payable_value
        return body


@dataclass
class PaymentRecord:
    """Ledger entry for one completed work order."""
    work_order_id: str
    worker_id: str
    amount: Decimal
    status: str = PaymentStatus.PENDING
    payment_date: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
    version: int = 0

    def __post_init__(self):
        if self.status not in PAYMENT_STATUSES:
            raise ValueError(f"Unknown payment status: {self.status}")

    @property
    def is_persisted(self) -> bool:
        return self.version > 0

    def to_item(self) -> Dict[str, Any]:
        item = {
            'workOrderId': self.work_order_id,
            'workerId': self.worker_id,
            'amount': self.amount,
            'status': self.status,
            'paymentDate': format_timestamp(self.payment_date),
            'createdAt': format_timestamp(self.created_at),
            'updatedAt': format_timestamp(self.updated_at),
            'version': self.version,
        }
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'PaymentRecord':
        return cls(
            work_order_id=item['workOrderId'],
            worker_id=item.get('workerId'),
            amount=Decimal(str(item.get('amount', 0))),
            status=item.get('status', PaymentStatus.PENDING),
            payment_date=parse_timestamp(item.get('paymentDate')),
            created_at=parse_timestamp(item.get('createdAt')),
            updated_at=parse_timestamp(item.get('updatedAt')),
            version=int(item.get('version', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_item()


@dataclass(frozen=True)
class Worker:
    """Worker profile as seen by the core (credentials live elsewhere)."""
    id: str
    full_name: str = ''
    email: str = ''

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> 'Worker':
        return cls(
            id=item['workerId'],
            full_name=item.get('fullName', ''),
            email=item.get('email', ''),
        )

    def to_item(self) -> Dict[str, Any]:
        return {'workerId': self.id, 'fullName': self.full_name, 'email': self.email}
