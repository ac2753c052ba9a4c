"""
Request Completion Handler.
POST /worker/work-orders/{workOrderId}/complete
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    order = get_service().request_completion(order_id, actor)
    return format_response(200, {
        'message': 'Completion requested, waiting for admin approval',
        'workOrder': order.to_dict()
    })
