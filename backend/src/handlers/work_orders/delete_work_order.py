"""
Delete Work Order Handler.
DELETE /admin/work-orders/{workOrderId}

Only drafts can be deleted.
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    order = get_service().delete_work_order(order_id, actor)

    return format_response(200, {
        'message': f'Work order "{order.title}" deleted',
        'deletedWorkOrder': {'workOrderId': order.id, 'title': order.title, 'status': order.state}
    })
