"""
Payroll Report Handler.
GET /admin/payroll?days=10&cycle=14th
GET /admin/payroll?startDate=2024-01-01&endDate=2024-01-14

Completed work orders in the period grouped per worker, with late penalties
applied and the payment status of each order. A bare endDate covers that
whole day.
"""
import datetime

from spk.api import api_handler
from spk.config import config
from spk.errors import ValidationError
from spk.payroll import PayrollReporter, default_period
from spk.service import get_store
from spk.utils import format_response, get_query_param, parse_timestamp


def is_bare_date(value: str) -> bool:
    try:
        datetime.date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def resolve_period(event: dict):
    start_param = get_query_param(event, 'startDate')
    end_param = get_query_param(event, 'endDate')

    if start_param or end_param:
        try:
            start = parse_timestamp(start_param)
            end = parse_timestamp(end_param)
        except ValueError:
            raise ValidationError('Invalid startDate or endDate')
        if start is None or end is None:
            raise ValidationError('startDate and endDate must be given together')
        if is_bare_date(end_param):
            end = end + datetime.timedelta(days=1) - datetime.timedelta(microseconds=1)
        return start, end

    try:
        days = int(get_query_param(event, 'days', str(config.PAYROLL_DEFAULT_DAYS)))
    except ValueError:
        raise ValidationError('days must be an integer')
    if days <= 0:
        raise ValidationError('days must be positive')
    return default_period(days)


@api_handler
def handler(event, context, actor):
    start, end = resolve_period(event)
    cycle = get_query_param(event, 'cycle')

    report = PayrollReporter(get_store()).payroll_report(actor, start, end, cycle)
    return format_response(200, report)
