"""
Get Work Order Handler.
GET /work-orders/{workOrderId}
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    order = get_service().get_work_order(order_id, actor)
    return format_response(200, {'workOrder': order.to_dict()})
