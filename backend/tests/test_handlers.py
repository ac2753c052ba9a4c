"""
Tests for the Lambda handlers: API Gateway events in, JSON responses out.
"""
from unittest.mock import patch

import pytest

from conftest import api_event, at, response_body
from handlers.dashboard import admin_stats, recent_orders, worker_dashboard
from handlers.payroll import bulk_mark_paid, get_payroll, mark_paid, update_payment_status
from handlers.work_orders import (
    approve_completion, create_work_orders, delete_work_order, extend_deadline, get_work_order,
    list_work_orders, request_completion, respond_to_approval, send_for_approval, update_work_order,
)
from handlers.workers import list_workers, workers_detailed
from spk.models import NotificationKind, WorkOrderStatus as S


def admin_event(**kwargs):
    return api_event(sub='admin-1', groups='admin', **kwargs)


def worker_event(worker_id='worker-1', **kwargs):
    return api_event(sub=worker_id, groups='worker', **kwargs)


def order_path(order):
    return {'workOrderId': order.id}


@pytest.fixture(autouse=True)
def wired(installed_service):
    return installed_service


class TestAuthentication:

    def test_missing_claims(self):
        response = create_work_orders.handler(api_event(body={}), None)
        assert response['statusCode'] == 401
        assert response_body(response)['error'] == 'UNAUTHENTICATED'

    def test_user_without_role(self):
        response = list_work_orders.handler(api_event(sub='someone', groups='guests'), None)
        assert response['statusCode'] == 401

    def test_admin_group_wins(self, make_order):
        make_order(S.DRAFT)
        event = api_event(sub='worker-1', groups='worker,admin')
        response = list_work_orders.handler(event, None)
        assert response_body(response)['total'] == 1


class TestWorkOrderHandlers:

    def test_create_fan_out(self, store):
        event = admin_event(body={
            'title': 'Pengecatan gedung',
            'description': 'Cat eksterior gedung A',
            'deadline': '2024-01-10T00:00:00Z',
            'requirements': ['Foto sebelum', 'Foto sesudah'],
            'assignments': [
                {'workerId': 'worker-1', 'value': 100000},
                {'workerId': 'worker-2', 'value': 200000},
                {'workerId': 'worker-3', 'value': 300000},
            ],
        })

        response = create_work_orders.handler(event, None)

        assert response['statusCode'] == 201
        body = response_body(response)
        assert body['batchId']
        assert [o['value'] for o in body['workOrders']] == [100000, 200000, 300000]
        assert {o['status'] for o in body['workOrders']} == {S.DRAFT}
        assert len(store.list_orders()) == 3

    def test_create_single_worker_shorthand(self):
        event = admin_event(body={
            'title': 'Servis AC',
            'description': 'Servis AC ruang rapat',
            'deadline': '2024-01-10',
            'workerId': 'worker-2',
            'value': '450000',
        })
        response = create_work_orders.handler(event, None)
        body = response_body(response)
        assert response['statusCode'] == 201
        assert body['batchId'] is None
        assert body['workOrders'][0]['workerId'] == 'worker-2'

    def test_create_validation_error(self, store):
        event = admin_event(body={
            'title': 'Servis AC',
            'description': 'Servis AC ruang rapat',
            'deadline': '2024-01-10',
            'assignments': [{'workerId': 'worker-1', 'value': -1}],
        })
        response = create_work_orders.handler(event, None)
        assert response['statusCode'] == 400
        assert response_body(response)['error'] == 'VALIDATION_ERROR'
        assert store.list_orders() == []

    def test_create_with_list_worker_id(self, store):
        event = admin_event(body={
            'title': 'Servis AC',
            'description': 'Servis AC ruang rapat',
            'deadline': '2024-01-10',
            'assignments': [{'workerId': ['worker-1'], 'value': 100000}],
        })
        response = create_work_orders.handler(event, None)
        assert response['statusCode'] == 400
        assert response_body(response)['error'] == 'VALIDATION_ERROR'
        assert store.list_orders() == []

    def test_create_by_worker_is_forbidden(self):
        event = worker_event(body={
            'title': 'Servis AC',
            'description': 'Servis AC ruang rapat',
            'deadline': '2024-01-10',
            'assignments': [{'workerId': 'worker-1', 'value': 100000}],
        })
        response = create_work_orders.handler(event, None)
        assert response['statusCode'] == 403

    def test_full_lifecycle(self, make_order, clock, notifier):
        order = make_order(S.DRAFT)

        response = send_for_approval.handler(admin_event(path=order_path(order)), None)
        assert response_body(response)['workOrder']['status'] == S.PENDING_APPROVAL

        response = respond_to_approval.handler(worker_event(path=order_path(order), body={'accept': True}), None)
        assert response_body(response)['workOrder']['status'] == S.ACTIVE

        response = request_completion.handler(worker_event(path=order_path(order)), None)
        assert response_body(response)['workOrder']['status'] == S.COMPLETION_REQUESTED

        clock.now = at(2024, 1, 13)
        response = approve_completion.handler(admin_event(path=order_path(order)), None)
        body = response_body(response)
        assert response['statusCode'] == 200
        assert body['status'] == S.DONE_LATE
        assert body['settlement']['daysLate'] == 3
        assert body['settlement']['penaltyPercentage'] == 9
        assert body['settlement']['finalValue'] == 910000
        assert body['workOrder']['finalValue'] == 910000
        assert notifier.sent[-1]['eventKind'] == NotificationKind.COMPLETION_APPROVED

    def test_invalid_transition_is_409(self, make_order):
        order = make_order(S.ACTIVE)
        response = send_for_approval.handler(admin_event(path=order_path(order)), None)
        body = response_body(response)
        assert response['statusCode'] == 409
        assert body['error'] == 'INVALID_TRANSITION'
        assert body['workOrderId'] == order.id

    def test_respond_requires_boolean(self, make_order):
        order = make_order(S.PENDING_APPROVAL)
        response = respond_to_approval.handler(worker_event(path=order_path(order), body={'accept': 'yes'}), None)
        assert response['statusCode'] == 400

    def test_other_worker_is_forbidden(self, make_order):
        order = make_order(S.PENDING_APPROVAL)
        event = worker_event('worker-2', path=order_path(order), body={'accept': True})
        response = respond_to_approval.handler(event, None)
        assert response['statusCode'] == 403

    def test_missing_path_param(self):
        response = send_for_approval.handler(admin_event(path={}), None)
        assert response['statusCode'] == 400

    def test_get_unknown_order(self):
        response = get_work_order.handler(admin_event(path={'workOrderId': 'missing'}), None)
        assert response['statusCode'] == 404
        assert response_body(response)['error'] == 'NOT_FOUND'

    def test_get_own_order(self, make_order):
        order = make_order(S.ACTIVE)
        response = get_work_order.handler(worker_event(path=order_path(order)), None)
        assert response_body(response)['workOrder']['workOrderId'] == order.id

    def test_list_with_status_filter(self, make_order):
        make_order(S.DRAFT)
        active = make_order(S.ACTIVE)
        response = list_work_orders.handler(admin_event(query={'status': 'active'}), None)
        body = response_body(response)
        assert body['total'] == 1
        assert body['workOrders'][0]['workOrderId'] == active.id

    def test_list_unknown_status(self):
        response = list_work_orders.handler(admin_event(query={'status': 'ARCHIVED'}), None)
        assert response['statusCode'] == 400

    def test_update_draft(self, make_order):
        order = make_order(S.DRAFT)
        event = admin_event(path=order_path(order), body={'title': 'Judul baru', 'workerId': 'worker-3'})
        body = response_body(update_work_order.handler(event, None))
        assert body['workOrder']['title'] == 'Judul baru'
        assert body['workOrder']['workerId'] == 'worker-3'

    def test_update_active_is_invalid_state(self, make_order):
        order = make_order(S.ACTIVE)
        event = admin_event(path=order_path(order), body={'value': 5})
        response = update_work_order.handler(event, None)
        assert response['statusCode'] == 409
        assert response_body(response)['error'] == 'INVALID_STATE'

    def test_extend_deadline(self, make_order):
        order = make_order(S.ACTIVE)
        event = admin_event(path=order_path(order), body={'newDeadline': '2024-01-20T00:00:00Z'})
        response = extend_deadline.handler(event, None)
        assert response['statusCode'] == 200
        assert response_body(response)['workOrder']['deadline'].startswith('2024-01-20')

    def test_extend_deadline_not_later(self, make_order):
        order = make_order(S.ACTIVE)
        event = admin_event(path=order_path(order), body={'newDeadline': '2024-01-05T00:00:00Z'})
        response = extend_deadline.handler(event, None)
        assert response['statusCode'] == 400
        assert response_body(response)['error'] == 'INVALID_DEADLINE'

    def test_delete(self, make_order, store):
        order = make_order(S.DRAFT)
        response = delete_work_order.handler(admin_event(path=order_path(order)), None)
        assert response['statusCode'] == 200
        assert store.list_orders() == []

    def test_unexpected_error_is_500(self, make_order):
        order = make_order(S.DRAFT)
        with patch('handlers.work_orders.get_work_order.get_service', side_effect=RuntimeError('boom')):
            response = get_work_order.handler(admin_event(path=order_path(order)), None)
        assert response['statusCode'] == 500
        assert response_body(response)['error'] == 'INTERNAL_ERROR'


class TestPayrollHandlers:

    def test_mark_paid_and_revert(self, make_order):
        order = make_order(S.DONE_LATE)

        response = mark_paid.handler(admin_event(path=order_path(order)), None)
        payment = response_body(response)['payment']
        assert payment['status'] == 'paid'
        assert payment['amount'] == 910000

        event = admin_event(path=order_path(order), body={'status': 'pending'})
        payment = response_body(update_payment_status.handler(event, None))['payment']
        assert payment['status'] == 'pending'
        assert payment['paymentDate'] is None

    def test_mark_paid_not_eligible(self, make_order):
        order = make_order(S.ACTIVE)
        response = mark_paid.handler(admin_event(path=order_path(order)), None)
        assert response['statusCode'] == 409
        assert response_body(response)['error'] == 'NOT_ELIGIBLE'

    def test_bulk_mark_paid(self, make_order):
        done = make_order(S.DONE_ON_TIME)
        active = make_order(S.ACTIVE, worker_id='worker-2')
        event = admin_event(body={'workOrderIds': [done.id, active.id]})

        body = response_body(bulk_mark_paid.handler(event, None))

        assert body['succeeded'] == 1
        assert body['failed'] == 1
        assert [r['success'] for r in body['results']] == [True, False]

    def test_bulk_mark_paid_requires_ids(self):
        response = bulk_mark_paid.handler(admin_event(body={'workOrderIds': []}), None)
        assert response['statusCode'] == 400

    def test_payroll_report(self, make_order):
        make_order(S.DONE_LATE)
        event = admin_event(query={'startDate': '2024-01-01', 'endDate': '2024-01-31', 'cycle': '28th'})

        body = response_body(get_payroll.handler(event, None))

        assert body['summary']['totalProjects'] == 1
        assert body['summary']['pendingAmount'] == 910000
        assert body['summary']['period']['cycle'] == '28th'
        assert body['workers'][0]['workerName'] == 'Budi Santoso'

    def test_payroll_report_half_period(self):
        event = admin_event(query={'startDate': '2024-01-01'})
        response = get_payroll.handler(event, None)
        assert response['statusCode'] == 400

    def test_bare_end_date_covers_whole_day(self, make_order):
        """An order approved at midday on endDate is in the report."""
        make_order(S.DONE_LATE, approve_at=at(2024, 1, 13, 12))
        event = admin_event(query={'startDate': '2024-01-01', 'endDate': '2024-01-13'})

        body = response_body(get_payroll.handler(event, None))

        assert body['summary']['totalProjects'] == 1
        assert body['summary']['period']['endDate'].startswith('2024-01-13T23:59:59')

    def test_timestamp_end_date_is_exact(self, make_order):
        """A full timestamp endDate is used as given."""
        make_order(S.DONE_LATE, approve_at=at(2024, 1, 13, 12))
        event = admin_event(query={'startDate': '2024-01-01', 'endDate': '2024-01-13T06:00:00Z'})

        body = response_body(get_payroll.handler(event, None))

        assert body['summary']['totalProjects'] == 0

    def test_payroll_report_bad_days(self):
        response = get_payroll.handler(admin_event(query={'days': 'ten'}), None)
        assert response['statusCode'] == 400


class TestDashboardHandlers:

    def test_admin_stats(self, make_order):
        make_order(S.ACTIVE)
        body = response_body(admin_stats.handler(admin_event(), None))
        assert body['stats']['activeProjects'] == 1
        assert body['stats']['totalWorkers'] == 3

    def test_worker_dashboard(self, make_order):
        make_order(S.PENDING_APPROVAL)
        body = response_body(worker_dashboard.handler(worker_event(), None))
        assert body['stats']['pendingApproval'] == 1
        assert body['worker']['workerId'] == 'worker-1'

    def test_admin_cannot_open_worker_dashboard(self):
        response = worker_dashboard.handler(admin_event(), None)
        assert response['statusCode'] == 403

    def test_recent_orders(self, make_order):
        make_order(S.DRAFT)
        make_order(S.ACTIVE, worker_id='worker-2')
        body = response_body(recent_orders.handler(admin_event(query={'limit': '1'}), None))
        assert len(body['workOrders']) == 1
        assert body['workOrders'][0]['workerName']

    def test_recent_orders_bad_limit(self):
        response = recent_orders.handler(admin_event(query={'limit': 'many'}), None)
        assert response['statusCode'] == 400


class TestWorkerHandlers:

    def test_list_workers(self):
        """The roster carries the ids that createWorkOrders needs."""
        body = response_body(list_workers.handler(admin_event(), None))
        assert body['total'] == 3
        assert {w['workerId'] for w in body['workers']} == {'worker-1', 'worker-2', 'worker-3'}

    def test_list_workers_admin_only(self):
        response = list_workers.handler(worker_event(), None)
        assert response['statusCode'] == 403

    def test_workers_detailed(self, make_order):
        make_order(S.DONE_LATE)
        body = response_body(workers_detailed.handler(admin_event(), None))
        budi = next(w for w in body['workers'] if w['workerId'] == 'worker-1')
        assert budi['completedProjects'] == 1
        assert budi['totalEarnings'] == 910000
        assert budi['history'][0]['status'] == S.DONE_LATE


class TestParkedNotifications:

    def test_parked_notifications_are_retried_on_next_request(self, make_order, notifier):
        with patch.object(notifier, 'publish', return_value=False):
            order = make_order(S.PENDING_APPROVAL)
        assert notifier.pending_retries == 1
        assert notifier.sent == []

        get_work_order.handler(admin_event(path=order_path(order)), None)

        assert notifier.pending_retries == 0
        assert notifier.sent[0]['eventKind'] == NotificationKind.WORK_ORDER_SENT
