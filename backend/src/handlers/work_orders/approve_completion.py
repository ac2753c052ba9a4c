"""
Approve Completion Handler.
POST /admin/work-orders/{workOrderId}/approve-completion

The approval time is the completion time: the order settles as DONE_ON_TIME
or DONE_LATE, with a 3% per started day penalty when late.
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    order = get_service().approve_completion(order_id, actor)
    settlement = order.settlement

    return format_response(200, {
        'message': 'Completion approved' + (' on time' if settlement.on_time else f' ({settlement.days_late} days late)'),
        'status': order.state,
        'settlement': settlement.to_item(),
        'workOrder': order.to_dict()
    })
