"""
Worker Dashboard Handler.
GET /worker/dashboard

The worker is always the caller; there is no way to read another worker's
dashboard.
"""
from spk.api import api_handler
from spk.payroll import PayrollReporter
from spk.service import get_store
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    dashboard = PayrollReporter(get_store()).worker_dashboard(actor)
    return format_response(200, dashboard)
