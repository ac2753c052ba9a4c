"""
Send For Approval Handler.
POST /admin/work-orders/{workOrderId}/send

Moves a draft to PENDING_APPROVAL and notifies the assigned worker.
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    order = get_service().send_for_approval(order_id, actor)
    return format_response(200, {
        'message': 'Work order sent to worker',
        'workOrder': order.to_dict()
    })
