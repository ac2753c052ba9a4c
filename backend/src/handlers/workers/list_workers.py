"""
List Workers Handler.
GET /admin/workers

Roster the admin picks assignees from when creating work orders.
"""
from spk.api import api_handler
from spk.payroll import PayrollReporter
from spk.service import get_store
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    workers = PayrollReporter(get_store()).list_workers(actor)
    return format_response(200, {
        'workers': workers,
        'total': len(workers)
    })
