"""
Mark Paid Handler.
POST /admin/payroll/{workOrderId}/mark-paid

Idempotent: marking an already paid order returns the existing record.
"""
from spk.api import api_handler, require_path_param
from spk.payments import get_ledger
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    record = get_ledger().mark_paid(order_id, actor)
    return format_response(200, {
        'message': 'Work order marked as paid',
        'payment': record.to_dict()
    })
