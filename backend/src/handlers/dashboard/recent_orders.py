"""
Recent Work Orders Handler.
GET /admin/dashboard/recent-orders?limit=10
"""
from spk.api import api_handler
from spk.errors import ValidationError
from spk.payroll import PayrollReporter, RECENT_ORDERS_LIMIT
from spk.service import get_store
from spk.utils import format_response, get_query_param


@api_handler
def handler(event, context, actor):
    try:
        limit = int(get_query_param(event, 'limit', str(RECENT_ORDERS_LIMIT)))
    except ValueError:
        raise ValidationError('limit must be an integer')

    orders = PayrollReporter(get_store()).recent_work_orders(actor, limit)
    return format_response(200, {'workOrders': orders})
