"""
Shared fixtures for the work-order test suites.
"""
import datetime
import json
import os
import sys

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

os.environ.setdefault('AWS_REGION', 'us-east-1')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('STORAGE_BACKEND', 'memory')

from spk.auth import Actor  # noqa: E402
from spk.models import Role, Worker, WorkOrderStatus  # noqa: E402
from spk.notifications import RecordingNotifier  # noqa: E402
from spk.payments import PaymentLedger  # noqa: E402
from spk.service import WorkOrderService, set_service  # noqa: E402
from spk.store import InMemoryWorkOrderStore  # noqa: E402

UTC = datetime.timezone.utc


def at(year, month, day, hour=0, minute=0, second=0):
    """Aware UTC datetime shorthand."""
    return datetime.datetime(year, month, day, hour, minute, second, tzinfo=UTC)


class FixedClock:
    """Clock the tests move by hand."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + datetime.timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(at(2024, 1, 1, 9))


@pytest.fixture
def workers():
    return [
        Worker('worker-1', 'Budi Santoso', 'budi@example.com'),
        Worker('worker-2', 'Siti Rahma', 'siti@example.com'),
        Worker('worker-3', 'Agus Wijaya', 'agus@example.com'),
    ]


@pytest.fixture
def store(workers):
    return InMemoryWorkOrderStore(workers)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier, clock):
    return WorkOrderService(store, notifier, clock)


@pytest.fixture
def ledger(store, notifier, clock):
    return PaymentLedger(store, notifier, clock, max_workers=4)


@pytest.fixture
def admin():
    return Actor('admin-1', Role.ADMIN)


@pytest.fixture
def worker():
    return Actor('worker-1', Role.WORKER)


@pytest.fixture
def other_worker():
    return Actor('worker-2', Role.WORKER)


@pytest.fixture
def make_order(service, admin):
    """Create a single order for worker-1 and drive it to the requested state."""

    def _make(state=WorkOrderStatus.DRAFT, value=1000000, deadline='2024-01-10T00:00:00Z',
              worker_id='worker-1', approve_at=None):
        order = service.create_work_orders(
            admin,
            title='Pasang instalasi listrik',
            description='Instalasi listrik lantai 2',
            deadline=deadline,
            requirements=['Foto sebelum/sesudah', 'Laporan harian'],
            assignments=[(worker_id, value)],
        )[0]
        assignee = Actor(worker_id, Role.WORKER)

        path = {
            WorkOrderStatus.DRAFT: [],
            WorkOrderStatus.PENDING_APPROVAL: ['send'],
            WorkOrderStatus.ACTIVE: ['send', 'accept'],
            WorkOrderStatus.REJECTED: ['send', 'reject'],
            WorkOrderStatus.COMPLETION_REQUESTED: ['send', 'accept', 'complete'],
            WorkOrderStatus.DONE_ON_TIME: ['send', 'accept', 'complete', 'approve'],
            WorkOrderStatus.DONE_LATE: ['send', 'accept', 'complete', 'approve'],
        }[state]

        for step in path:
            if step == 'send':
                order = service.send_for_approval(order.id, admin)
            elif step == 'accept':
                order = service.respond_to_approval(order.id, assignee, accept=True)
            elif step == 'reject':
                order = service.respond_to_approval(order.id, assignee, accept=False)
            elif step == 'complete':
                order = service.request_completion(order.id, assignee)
            elif step == 'approve':
                if approve_at is None:
                    approve_at = at(2024, 1, 13) if state == WorkOrderStatus.DONE_LATE else at(2024, 1, 9)
                order = service.approve_completion(order.id, admin, now=approve_at)

        assert order.state == state
        return order

    return _make


@pytest.fixture
def installed_service(service):
    """Make `service` the process-wide service the handlers use."""
    set_service(service)
    yield service
    set_service(None)


def api_event(sub=None, groups=None, body=None, path=None, query=None):
    """API Gateway proxy event with Cognito claims."""
    event = {
        'httpMethod': 'POST',
        'pathParameters': path,
        'queryStringParameters': query,
        'body': json.dumps(body) if body is not None else None,
        'requestContext': {},
    }
    if sub:
        event['requestContext'] = {
            'authorizer': {'claims': {'sub': sub, 'cognito:groups': groups or ''}}
        }
    return event


def response_body(response):
    return json.loads(response['body'])
