"""
Storage contract for work orders, payment records and workers.

Writes are optimistic: every record carries a version, save() only succeeds
when the stored version still equals the version of the record passed in,
and the returned copy carries the bumped version.
"""
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from .errors import NotFound, VersionConflict
from .models import PaymentRecord, WorkOrder, Worker


class WorkOrderStore(ABC):
    """Persistence collaborator used by the service."""

    @abstractmethod
    def load(self, order_id: str) -> WorkOrder:
        """Return the order or raise NotFound."""

    @abstractmethod
    def create_many(self, orders: List[WorkOrder]) -> List[WorkOrder]:
        """Persist all orders or none of them."""

    @abstractmethod
    def save(self, order: WorkOrder) -> WorkOrder:
        """Compare-and-set on order.version; raises VersionConflict."""

    @abstractmethod
    def delete(self, order: WorkOrder) -> None:
        """Delete if the stored version still matches; raises VersionConflict."""

    @abstractmethod
    def list_orders(self, worker_id: str = None, statuses: Iterable[str] = None) -> List[WorkOrder]:
        """Orders, optionally restricted to one worker and/or a set of states."""

    @abstractmethod
    def get_worker(self, worker_id: str) -> Optional[Worker]:
        pass

    @abstractmethod
    def list_workers(self) -> List[Worker]:
        pass

    @abstractmethod
    def load_payment(self, order_id: str) -> Optional[PaymentRecord]:
        pass

    @abstractmethod
    def save_payment(self, record: PaymentRecord) -> PaymentRecord:
        """Create (version 0) or compare-and-set update; raises VersionConflict."""

    @abstractmethod
    def list_payments(self, order_ids: Iterable[str]) -> Dict[str, PaymentRecord]:
        pass

    def worker_exists(self, worker_id: str) -> bool:
        return self.get_worker(worker_id) is not None


class InMemoryWorkOrderStore(WorkOrderStore):
    """In-process store with one lock per record for the compare-and-set step."""

    def __init__(self, workers: Iterable[Worker] = ()):
        self._orders: Dict[str, WorkOrder] = {}
        self._payments: Dict[str, PaymentRecord] = {}
        self._workers: Dict[str, Worker] = {w.id: w for w in workers}
        self._table_lock = threading.Lock()
        self._record_locks = defaultdict(threading.Lock)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._table_lock:
            return self._record_locks[key]

    def load(self, order_id: str) -> WorkOrder:
        order = self._orders.get(order_id)
        if order is None:
            raise NotFound(f'Work order {order_id} not found', order_id)
        return order

    def create_many(self, orders: List[WorkOrder]) -> List[WorkOrder]:
        with self._table_lock:
            for order in orders:
                if order.id in self._orders:
                    raise VersionConflict(order.id, 0)
            created = [order.evolve(version=1) for order in orders]
            for order in created:
                self._orders[order.id] = order
        return created

    def save(self, order: WorkOrder) -> WorkOrder:
        with self._lock_for(order.id):
            current = self._orders.get(order.id)
            if current is None or current.version != order.version:
                raise VersionConflict(order.id, order.version)
            saved = order.evolve(version=order.version + 1)
            self._orders[order.id] = saved
        return saved

    def delete(self, order: WorkOrder) -> None:
        with self._lock_for(order.id):
            current = self._orders.get(order.id)
            if current is None or current.version != order.version:
                raise VersionConflict(order.id, order.version)
            del self._orders[order.id]

    def list_orders(self, worker_id: str = None, statuses: Iterable[str] = None) -> List[WorkOrder]:
        wanted = set(statuses) if statuses else None
        return [
            order for order in list(self._orders.values())
            if (worker_id is None or order.assigned_worker_id == worker_id)
            and (wanted is None or order.state in wanted)
        ]

    def get_worker(self, worker_id: str) -> Optional[Worker]:
        return self._workers.get(worker_id)

    def list_workers(self) -> List[Worker]:
        return list(self._workers.values())

    def load_payment(self, order_id: str) -> Optional[PaymentRecord]:
        return self._payments.get(order_id)

    def save_payment(self, record: PaymentRecord) -> PaymentRecord:
        key = f'payment#{record.work_order_id}'
        with self._lock_for(key):
            current = self._payments.get(record.work_order_id)
            current_version = current.version if current else 0
            if current_version != record.version:
                raise VersionConflict(key, record.version)
            saved = replace(record, version=record.version + 1)
            self._payments[record.work_order_id] = saved
        return saved

    def list_payments(self, order_ids: Iterable[str]) -> Dict[str, PaymentRecord]:
        return {
            order_id: self._payments[order_id]
            for order_id in order_ids
            if order_id in self._payments
        }
