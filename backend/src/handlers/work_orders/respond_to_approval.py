"""
Respond To Approval Handler.
POST /worker/work-orders/{workOrderId}/respond
Body: { "accept": true | false }
"""
from spk.api import api_handler, require_path_param
from spk.errors import ValidationError
from spk.service import get_service
from spk.utils import format_response, parse_body


@api_handler
def handler(event, context, actor):
    order_id = require_path_param(event, 'workOrderId')
    accept = parse_body(event).get('accept')
    if not isinstance(accept, bool):
        raise ValidationError('accept must be true or false', order_id)

    order = get_service().respond_to_approval(order_id, actor, accept)
    return format_response(200, {
        'message': 'Work order accepted, it is now active' if accept else 'Work order rejected',
        'workOrder': order.to_dict()
    })
