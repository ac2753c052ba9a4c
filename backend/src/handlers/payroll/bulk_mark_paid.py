"""
Bulk Mark Paid Handler.
POST /admin/payroll/bulk-mark-paid
Body: { "workOrderIds": ["...", "..."] }

Best effort: every id is attempted and reported on its own.
"""
from spk.api import api_handler
from spk.errors import ValidationError
from spk.payments import get_ledger
from spk.utils import format_response, parse_body


@api_handler
def handler(event, context, actor):
    order_ids = parse_body(event).get('workOrderIds')
    if not isinstance(order_ids, list) or not order_ids:
        raise ValidationError('workOrderIds must be a non-empty list')

    outcomes = get_ledger().bulk_mark_paid([str(order_id) for order_id in order_ids], actor)
    succeeded = sum(1 for outcome in outcomes if outcome.success)

    return format_response(200, {
        'message': f'Marked {succeeded} of {len(outcomes)} work orders as paid',
        'succeeded': succeeded,
        'failed': len(outcomes) - succeeded,
        'results': [outcome.to_dict() for outcome in outcomes]
    })
