"""
Payment ledger for settled work orders.

A PaymentRecord is created lazily on the first status change of a completed
order and from then on is only ever toggled between pending and paid by an
admin. Ledger updates never touch order state.
"""
import datetime
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from .auth import Actor
from .config import config
from .errors import InvalidTransition, NotEligible, ValidationError, VersionConflict, WorkOrderError
from .logging import logger
from .models import NotificationKind, PaymentRecord, PaymentStatus, PAYMENT_STATUSES, WorkOrder
from .notifications import Notifier
from .service import get_service, require_admin
from .store import WorkOrderStore
from .utils import utc_now


@dataclass(frozen=True)
class PaymentOutcome:
    """Per-order result of a bulk payment command."""
    work_order_id: str
    success: bool
    record: Optional[PaymentRecord] = None
    error_code: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {'workOrderId': self.work_order_id, 'success': self.success}
        if self.record is not None:
            body['payment'] = self.record.to_dict()
        if self.error_code is not None:
            body['error'] = self.error_code
            body['message'] = self.message
        return body


class PaymentLedger:
    """Admin payment-status commands over the store's payment records."""

    def __init__(
        self,
        store: WorkOrderStore,
        notifier: Notifier = None,
        clock: Callable[[], datetime.datetime] = utc_now,
        max_workers: int = None
    ):
        self.store = store
        self.notifier = notifier or Notifier()
        self.clock = clock
        self.max_workers = max_workers or config.BULK_PAYMENT_WORKERS

    def mark_paid(self, order_id: str, actor: Actor) -> PaymentRecord:
        """
        Idempotent: an order that is already paid keeps the payment_date of
        the first call and nothing is written.
        """
        return self.set_status(order_id, actor, PaymentStatus.PAID)

    def set_status(self, order_id: str, actor: Actor, status: str) -> PaymentRecord:
        require_admin(actor, order_id)
        if status not in PAYMENT_STATUSES:
            raise ValidationError('Status must be either "paid" or "pending"', order_id)

        order = self._eligible_order(order_id)
        current = self.store.load_payment(order_id)

        if current is None:
            if status == PaymentStatus.PENDING:
                # Pending is the implicit state; nothing to record yet
                return self._new_record(order)
            current = self._new_record(order)
        elif current.status == status:
            return current

        now = self.clock()
        updated = replace(
            current,
            status=status,
            payment_date=now if status == PaymentStatus.PAID else None,
            amount=order.payable_value,
            created_at=current.created_at or now,
            updated_at=now,
        )

        try:
            saved = self.store.save_payment(updated)
        except VersionConflict:
            winner = self.store.load_payment(order_id)
            if winner is not None and winner.status == status:
                # A concurrent call already reached the requested status
                return winner
            logger.info(f"Invalid transition: payment for {order_id} changed concurrently")
            raise InvalidTransition('Payment record was modified concurrently; reload and retry', order_id)

        logger.info(f"Payment for work order {order_id} set to {status} by {actor.actor_id}")
        try:
            self.notifier.notify(order.assigned_worker_id, NotificationKind.PAYMENT_STATUS_CHANGED, order_id)
        except Exception as e:
            logger.warning(f"Payment notification for {order_id} failed: {e}")
        return saved

    def bulk_mark_paid(self, order_ids: Sequence[str], actor: Actor) -> List[PaymentOutcome]:
        """
        Mark every order paid, concurrently and independently.
        One failing id never blocks the others; results keep input order.
        """
        require_admin(actor)
        order_ids = list(dict.fromkeys(order_ids))
        if not order_ids:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(order_ids))) as pool:
            outcomes = list(pool.map(lambda order_id: self._try_mark_paid(order_id, actor), order_ids))

        paid = sum(1 for outcome in outcomes if outcome.success)
        logger.info(f"Bulk mark-paid by {actor.actor_id}: {paid}/{len(outcomes)} succeeded")
        return outcomes

    def _try_mark_paid(self, order_id: str, actor: Actor) -> PaymentOutcome:
        try:
            return PaymentOutcome(order_id, True, record=self.mark_paid(order_id, actor))
        except WorkOrderError as e:
            logger.info(f"Bulk mark-paid skipped {order_id}: {e.code} {e.message}")
            return PaymentOutcome(order_id, False, error_code=e.code, message=e.message)
        except Exception as e:
            logger.exception(f"Bulk mark-paid failed for {order_id}")
            return PaymentOutcome(order_id, False, error_code='INTERNAL_ERROR', message=str(e))

    def _eligible_order(self, order_id: str) -> WorkOrder:
        order = self.store.load(order_id)
        if not order.is_completed:
            raise NotEligible(f'Work order is {order.state}; only completed orders can be paid', order_id)
        return order

    @staticmethod
    def _new_record(order: WorkOrder) -> PaymentRecord:
        return PaymentRecord(
            work_order_id=order.id,
            worker_id=order.assigned_worker_id,
            amount=order.payable_value,
        )


_ledger = None


def get_ledger() -> PaymentLedger:
    """Get or create the process-wide ledger, sharing the service's store."""
    global _ledger
    service = get_service()
    if _ledger is None or _ledger.store is not service.store:
        _ledger = PaymentLedger(service.store, service.notifier, service.clock)
    return _ledger
