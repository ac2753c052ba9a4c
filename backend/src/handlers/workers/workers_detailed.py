"""
Workers Detailed Handler.
GET /admin/workers/detailed

Every worker with project counts, earnings after penalties and the history
of orders sent to them.
"""
from spk.api import api_handler
from spk.payroll import PayrollReporter
from spk.service import get_store
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    workers = PayrollReporter(get_store()).workers_detailed(actor)
    return format_response(200, {
        'message': f'Found {len(workers)} workers',
        'workers': workers
    })
