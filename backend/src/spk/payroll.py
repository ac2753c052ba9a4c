"""
Read-only payroll, roster and dashboard reporting.

Nothing here writes: reports are built from work-order and payment-record
snapshots, grouped per worker, with amounts taken after late penalties.
"""
import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .auth import Actor
from .errors import ValidationError
from .models import (
    COMPLETED_STATUSES, PaymentStatus, SettlementResult, WorkOrder, WorkOrderStatus,
)
from .penalty import calculate_settlement
from .service import require_admin, require_worker
from .store import WorkOrderStore
from .utils import format_timestamp, utc_now

RECENT_ORDERS_LIMIT = 10

# Sent to the worker and not yet settled
IN_PROGRESS_STATUSES = frozenset([
    WorkOrderStatus.PENDING_APPROVAL,
    WorkOrderStatus.ACTIVE,
    WorkOrderStatus.COMPLETION_REQUESTED,
])


def settlement_for(order: WorkOrder) -> SettlementResult:
    """Stored settlement, or one recomputed from completed_at for older records."""
    if order.settlement is not None:
        return order.settlement
    _, settlement = calculate_settlement(order.deadline, order.completed_at, order.value)
    return settlement


def payroll_line(order: WorkOrder, payment_status: str, payment_date, cycle: str) -> Dict[str, Any]:
    settlement = settlement_for(order)
    return {
        'workOrderId': order.id,
        'title': order.title,
        'description': order.description,
        'requirements': list(order.requirements),
        'status': order.state,
        'deadline': format_timestamp(order.deadline),
        'completedAt': format_timestamp(order.completed_at),
        'paymentStatus': payment_status,
        'paymentDate': format_timestamp(payment_date),
        'paymentCycle': cycle,
        'originalValue': settlement.original_value,
        'daysLate': settlement.days_late,
        'penaltyPercentage': settlement.penalty_percentage,
        'penaltyAmount': settlement.penalty_amount,
        'finalValue': settlement.final_value,
    }


class PayrollReporter:
    """Builds payroll summaries, the worker roster and dashboard counters from a store."""

    def __init__(self, store: WorkOrderStore):
        self.store = store

    def payroll_report(
        self,
        actor: Actor,
        start: datetime.datetime,
        end: datetime.datetime,
        cycle: str = None
    ) -> Dict[str, Any]:
        """
        Completed orders with completed_at in [start, end], grouped per worker
        and sorted by total payable amount (descending).
        """
        require_admin(actor)
        if start > end:
            raise ValidationError('startDate must not be after endDate')

        orders = [
            order for order in self.store.list_orders(statuses=COMPLETED_STATUSES)
            if start <= order.completed_at <= end
        ]
        orders.sort(key=lambda o: o.completed_at, reverse=True)
        payments = self.store.list_payments([order.id for order in orders])

        worker_cache = {}
        groups: Dict[str, Dict[str, Any]] = {}
        for order in orders:
            worker_id = order.assigned_worker_id
            if worker_id not in worker_cache:
                worker_cache[worker_id] = self.store.get_worker(worker_id)
            worker = worker_cache[worker_id]

            payment = payments.get(order.id)
            status = payment.status if payment else PaymentStatus.PENDING
            line = payroll_line(order, status, payment.payment_date if payment else None, cycle)

            group = groups.get(worker_id)
            if group is None:
                group = groups[worker_id] = {
                    'workerId': worker_id,
                    'workerName': worker.full_name if worker else '',
                    'workerEmail': worker.email if worker else '',
                    'totalProjects': 0,
                    'totalAmount': Decimal('0'),
                    'paidProjects': 0,
                    'paidAmount': Decimal('0'),
                    'pendingProjects': 0,
                    'pendingAmount': Decimal('0'),
                    'projects': [],
                }

            amount = line['finalValue']
            group['projects'].append(line)
            group['totalProjects'] += 1
            group['totalAmount'] += amount
            if status == PaymentStatus.PAID:
                group['paidProjects'] += 1
                group['paidAmount'] += amount
            else:
                group['pendingProjects'] += 1
                group['pendingAmount'] += amount

        workers = sorted(groups.values(), key=lambda g: g['totalAmount'], reverse=True)
        return {
            'workers': workers,
            'summary': {
                'totalWorkers': len(workers),
                'totalProjects': sum(w['totalProjects'] for w in workers),
                'totalAmount': sum((w['totalAmount'] for w in workers), Decimal('0')),
                'paidAmount': sum((w['paidAmount'] for w in workers), Decimal('0')),
                'pendingAmount': sum((w['pendingAmount'] for w in workers), Decimal('0')),
                'period': {
                    'startDate': format_timestamp(start),
                    'endDate': format_timestamp(end),
                    'cycle': cycle,
                },
            },
        }

    def dashboard_stats(self, actor: Actor) -> Dict[str, Any]:
        require_admin(actor)
        orders = self.store.list_orders()
        counts = _count_states(orders)
        return {
            'totalProjects': len(orders),
            'activeProjects': counts.get(WorkOrderStatus.ACTIVE, 0),
            'completedProjects': sum(counts.get(s, 0) for s in COMPLETED_STATUSES),
            'pendingApprovals': (
                counts.get(WorkOrderStatus.PENDING_APPROVAL, 0)
                + counts.get(WorkOrderStatus.COMPLETION_REQUESTED, 0)
            ),
            'onTimeCompletion': counts.get(WorkOrderStatus.DONE_ON_TIME, 0),
            'lateCompletion': counts.get(WorkOrderStatus.DONE_LATE, 0),
            'totalValue': sum((o.value for o in orders), Decimal('0')),
            'totalWorkers': len(self.store.list_workers()),
        }

    def recent_work_orders(self, actor: Actor, limit: int = RECENT_ORDERS_LIMIT) -> List[Dict[str, Any]]:
        """Newest orders first, with the assigned worker's name."""
        require_admin(actor)
        if limit <= 0:
            raise ValidationError('limit must be positive')

        orders = sorted(self.store.list_orders(), key=lambda o: o.created_at, reverse=True)[:limit]
        names = {w.id: w.full_name for w in self.store.list_workers()}
        return [
            {
                'workOrderId': order.id,
                'title': order.title,
                'status': order.state,
                'value': order.value,
                'deadline': format_timestamp(order.deadline),
                'createdAt': format_timestamp(order.created_at),
                'workerId': order.assigned_worker_id,
                'workerName': names.get(order.assigned_worker_id, ''),
            }
            for order in orders
        ]

    def list_workers(self, actor: Actor) -> List[Dict[str, Any]]:
        """Worker roster used to pick assignees, ordered by email."""
        require_admin(actor)
        workers = sorted(self.store.list_workers(), key=lambda w: (w.email, w.id))
        return [worker.to_item() for worker in workers]

    def workers_detailed(self, actor: Actor) -> List[Dict[str, Any]]:
        """
        Roster with per-worker project counts and earnings.

        Drafts have not been sent to the worker yet and are left out.
        Earnings are the post-penalty amounts of completed orders.
        """
        require_admin(actor)
        by_worker: Dict[str, List[WorkOrder]] = {}
        for order in self.store.list_orders():
            if order.state == WorkOrderStatus.DRAFT:
                continue
            by_worker.setdefault(order.assigned_worker_id, []).append(order)

        detailed = []
        for worker in sorted(self.store.list_workers(), key=lambda w: (w.email, w.id)):
            orders = sorted(by_worker.get(worker.id, []), key=lambda o: o.created_at, reverse=True)
            completed = [o for o in orders if o.is_completed]
            entry = worker.to_item()
            entry.update({
                'totalProjects': len(orders),
                'completedProjects': len(completed),
                'activeProjects': sum(1 for o in orders if o.state in IN_PROGRESS_STATUSES),
                'totalEarnings': sum((o.payable_value for o in completed), Decimal('0')),
                'history': [order.to_dict() for order in orders],
            })
            detailed.append(entry)
        return detailed

    def worker_dashboard(self, actor: Actor) -> Dict[str, Any]:
        require_worker(actor)
        orders = sorted(
            self.store.list_orders(worker_id=actor.actor_id),
            key=lambda o: o.updated_at,
            reverse=True
        )
        counts = _count_states(orders)
        worker = self.store.get_worker(actor.actor_id)
        return {
            'worker': worker.to_item() if worker else {'workerId': actor.actor_id},
            'projects': [order.to_dict() for order in orders],
            'stats': {
                'totalProjects': len(orders),
                'pendingApproval': counts.get(WorkOrderStatus.PENDING_APPROVAL, 0),
                'activeProjects': counts.get(WorkOrderStatus.ACTIVE, 0),
                'completedProjects': sum(counts.get(s, 0) for s in COMPLETED_STATUSES),
            },
        }


def _count_states(orders: List[WorkOrder]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for order in orders:
        counts[order.state] = counts.get(order.state, 0) + 1
    return counts


def default_period(days: int, now: Optional[datetime.datetime] = None):
    """(start, end) covering the last `days` days up to now."""
    end = now or utc_now()
    return end - datetime.timedelta(days=days), end
