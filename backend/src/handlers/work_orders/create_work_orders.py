"""
Create Work Orders Handler.
POST /admin/work-orders

Body:
{
    "title": "...",
    "description": "...",
    "deadline": "2024-01-10T17:00:00Z",
    "requirements": ["..."],
    "assignments": [{"workerId": "...", "value": 100000}, ...]
}

A single-worker body may use "workerId" and "value" at the top level instead
of "assignments". Each assignment becomes its own work order; if any of them
is invalid nothing is created.
"""
from spk.api import api_handler
from spk.errors import ValidationError
from spk.service import get_service
from spk.utils import format_response, parse_body


def parse_assignments(body: dict) -> list:
    assignments = body.get('assignments')
    if assignments is None and body.get('workerId') is not None:
        assignments = [{'workerId': body.get('workerId'), 'value': body.get('value')}]
    if not isinstance(assignments, list) or not assignments:
        raise ValidationError('No assignments provided')

    parsed = []
    for entry in assignments:
        if not isinstance(entry, dict):
            raise ValidationError('Each assignment needs a workerId and a value')
        parsed.append((entry.get('workerId'), entry.get('value')))
    return parsed


@api_handler
def handler(event, context, actor):
    body = parse_body(event)

    orders = get_service().create_work_orders(
        actor,
        title=body.get('title'),
        description=body.get('description'),
        deadline=body.get('deadline'),
        requirements=body.get('requirements'),
        assignments=parse_assignments(body),
    )

    return format_response(201, {
        'message': f'Created {len(orders)} work orders',
        'batchId': orders[0].batch_id,
        'workOrders': [order.to_dict() for order in orders]
    })
