"""
Update Payment Status Handler.
PATCH /admin/payroll/{workOrderId}/status
Body: { "status": "paid" | "pending" }
"""
from spk.api import api_handler, require_path_param
from spk.payments import get_ledger
from spk.utils import format_response, parse_body


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    status = parse_body(event).get('status')

    record = get_ledger().set_status(order_id, actor, status)
    return format_response(200, {
        'message': f'Payment status changed to {record.status}',
        'payment': record.to_dict()
    })
