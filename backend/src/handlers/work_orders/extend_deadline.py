"""
Extend Deadline Handler.
PATCH /admin/work-orders/{workOrderId}/deadline
Body: { "newDeadline": "2024-01-20T17:00:00Z" }
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response, parse_body


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    new_deadline = parse_body(event).get('newDeadline')

    order = get_service().extend_deadline(order_id, actor, new_deadline)
    return format_response(200, {
        'message': f'Deadline extended to {order.deadline.date().isoformat()}',
        'workOrder': order.to_dict()
    })
