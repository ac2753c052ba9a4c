"""
DynamoDB implementation of the work-order store.

Optimistic concurrency is a conditional put on the item's `version`
attribute; fan-out creation is one transact_write_items call so a batch is
persisted all-or-nothing. Reads are retried once on transient errors,
writes never are.
"""
import boto3
from typing import Any, Callable, Dict, Iterable, List, Optional
from boto3.dynamodb.conditions import Attr, Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .config import config
from .errors import NotFound, ValidationError, VersionConflict
from .logging import logger
from .models import PaymentRecord, WorkOrder, Worker
from .store import WorkOrderStore

# DynamoDB limits
MAX_TRANSACTION_ITEMS = 100
MAX_BATCH_GET_KEYS = 100

WORKER_INDEX = 'WorkerIndex'

_dynamodb = None
_serializer = TypeSerializer()


def get_dynamodb():
    """Get or create the DynamoDB resource."""
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource('dynamodb', region_name=config.AWS_REGION)
    return _dynamodb


def serialize_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a plain item to the low-level attribute-value format."""
    return {k: _serializer.serialize(v) for k, v in item.items()}


def is_conditional_failure(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in (
        'ConditionalCheckFailedException',
        'TransactionCanceledException',
    )


def read_with_retry(operation: Callable[[], Any], description: str) -> Any:
    """Run a read, retrying once on a transient client/connection error."""
    try:
        return operation()
    except (ClientError, BotoCoreError) as e:
        logger.warning(f"Retrying {description} after error: {e}")
        return operation()


class DynamoWorkOrderStore(WorkOrderStore):
    """WorkOrderStore backed by the work orders, payments and workers tables."""

    def __init__(
        self,
        dynamodb=None,
        work_orders_table: str = None,
        payments_table: str = None,
        workers_table: str = None
    ):
        self.dynamodb = dynamodb or get_dynamodb()
        self.work_orders_table_name = work_orders_table or config.WORK_ORDERS_TABLE
        self.payments_table_name = payments_table or config.PAYMENTS_TABLE
        self.workers_table_name = workers_table or config.WORKERS_TABLE
        self.work_orders = self.dynamodb.Table(self.work_orders_table_name)
        self.payments = self.dynamodb.Table(self.payments_table_name)
        self.workers = self.dynamodb.Table(self.workers_table_name)

    # ------------------------------------------------------------------
    # Work orders
    # ------------------------------------------------------------------

    def load(self, order_id: str) -> WorkOrder:
        response = read_with_retry(
            lambda: self.work_orders.get_item(Key={'workOrderId': order_id}, ConsistentRead=True),
            f"get work order {order_id}"
        )
        item = response.get('Item')
        if not item:
            raise NotFound(f'Work order {order_id} not found', order_id)
        return WorkOrder.from_item(item)

    def create_many(self, orders: List[WorkOrder]) -> List[WorkOrder]:
        if len(orders) > MAX_TRANSACTION_ITEMS:
            raise ValidationError(f'At most {MAX_TRANSACTION_ITEMS} work orders can be created at once')

        created = [order.evolve(version=1) for order in orders]
        transact_items = [
            {
                'Put': {
                    'TableName': self.work_orders_table_name,
                    'Item': serialize_item(order.to_item()),
                    'ConditionExpression': 'attribute_not_exists(workOrderId)'
                }
            }
            for order in created
        ]

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if is_conditional_failure(e):
                raise VersionConflict(orders[0].batch_id or orders[0].id, 0)
            raise

        logger.info(f"Created {len(created)} work orders in {self.work_orders_table_name}")
        return created

    def save(self, order: WorkOrder) -> WorkOrder:
        saved = order.evolve(version=order.version + 1)
        try:
            self.work_orders.put_item(
                Item=saved.to_item(),
                ConditionExpression=Attr('version').eq(order.version)
            )
        except ClientError as e:
            if is_conditional_failure(e):
                raise VersionConflict(order.id, order.version)
            raise
        return saved

    def delete(self, order: WorkOrder) -> None:
        try:
            self.work_orders.delete_item(
                Key={'workOrderId': order.id},
                ConditionExpression=Attr('version').eq(order.version)
            )
        except ClientError as e:
            if is_conditional_failure(e):
                raise VersionConflict(order.id, order.version)
            raise

    def list_orders(self, worker_id: str = None, statuses: Iterable[str] = None) -> List[WorkOrder]:
        params = {}
        if statuses:
            params['FilterExpression'] = Attr('status').is_in(list(statuses))

        if worker_id:
            params['IndexName'] = WORKER_INDEX
            params['KeyConditionExpression'] = Key('workerId').eq(worker_id)
            items = self._paginate(self.work_orders.query, params, f"query orders of {worker_id}")
        else:
            items = self._paginate(self.work_orders.scan, params, "scan work orders")

        return [WorkOrder.from_item(item) for item in items]

    def _paginate(self, operation, params: Dict[str, Any], description: str) -> List[Dict[str, Any]]:
        items = []
        while True:
            response = read_with_retry(lambda: operation(**params), description)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key:
                return items
            params = {**params, 'ExclusiveStartKey': last_key}

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def get_worker(self, worker_id: str) -> Optional[Worker]:
        response = read_with_retry(
            lambda: self.workers.get_item(Key={'workerId': worker_id}),
            f"get worker {worker_id}"
        )
        item = response.get('Item')
        return Worker.from_item(item) if item else None

    def list_workers(self) -> List[Worker]:
        items = self._paginate(self.workers.scan, {}, "scan workers")
        return [Worker.from_item(item) for item in items]

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def load_payment(self, order_id: str) -> Optional[PaymentRecord]:
        response = read_with_retry(
            lambda: self.payments.get_item(Key={'workOrderId': order_id}, ConsistentRead=True),
            f"get payment {order_id}"
        )
        item = response.get('Item')
        return PaymentRecord.from_item(item) if item else None

    def save_payment(self, record: PaymentRecord) -> PaymentRecord:
        saved = PaymentRecord.from_item({**record.to_item(), 'version': record.version + 1})
        if record.version == 0:
            condition = Attr('workOrderId').not_exists()
        else:
            condition = Attr('version').eq(record.version)

        try:
            self.payments.put_item(Item=saved.to_item(), ConditionExpression=condition)
        except ClientError as e:
            if is_conditional_failure(e):
                raise VersionConflict(f'payment#{record.work_order_id}', record.version)
            raise
        return saved

    def list_payments(self, order_ids: Iterable[str]) -> Dict[str, PaymentRecord]:
        order_ids = list(dict.fromkeys(order_ids))
        records = {}
        for start in range(0, len(order_ids), MAX_BATCH_GET_KEYS):
            keys = [{'workOrderId': order_id} for order_id in order_ids[start:start + MAX_BATCH_GET_KEYS]]
            request = {self.payments_table_name: {'Keys': keys}}
            while request:
                response = read_with_retry(
                    lambda: self.dynamodb.batch_get_item(RequestItems=request),
                    "batch get payments"
                )
                for item in response.get('Responses', {}).get(self.payments_table_name, []):
                    record = PaymentRecord.from_item(item)
                    records[record.work_order_id] = record
                request = response.get('UnprocessedKeys') or None
        return records
