"""
List Work Orders Handler.
GET /work-orders?status=ACTIVE,DONE_LATE

Admins see every order, workers only the orders assigned to them.
"""
from spk.api import api_handler
from spk.errors import ValidationError
from spk.models import ALL_STATUSES
from spk.service import get_service
from spk.utils import format_response, get_query_param


@api_handler
def handler(event, context, actor):
    status_param = get_query_param(event, 'status')
    statuses = None
    if status_param:
        statuses = [s.strip().upper() for s in status_param.split(',') if s.strip()]
        unknown = [s for s in statuses if s not in ALL_STATUSES]
        if unknown:
            raise ValidationError(f"Unknown status: {', '.join(unknown)}")

    orders = get_service().list_work_orders(actor, statuses)

    return format_response(200, {
        'workOrders': [order.to_dict() for order in orders],
        'total': len(orders)
    })
