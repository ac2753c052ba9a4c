"""
Update Work Order Handler.
PATCH /admin/work-orders/{workOrderId}

Body: any of "title", "description", "value", "deadline", "requirements",
"workerId". Only drafts can be edited; a later order accepts a deadline-only
body, which is treated as a deadline extension.
"""
from spk.api import api_handler, require_path_param
from spk.service import get_service
from spk.utils import format_response, parse_body

# Request field -> WorkOrder field
FIELD_NAMES = {
    'title': 'title',
    'description': 'description',
    'value': 'value',
    'deadline': 'deadline',
    'requirements': 'requirements',
    'workerId': 'assigned_worker_id',
}


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    body = parse_body(event)

    changes = {FIELD_NAMES.get(key, key): value for key, value in body.items()}
    order = get_service().update_work_order(order_id, actor, changes)

    return format_response(200, {
        'message': f'Work order "{order.title}" updated',
        'workOrder': order.to_dict()
    })
