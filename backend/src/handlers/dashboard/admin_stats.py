"""
Admin Dashboard Stats Handler.
GET /admin/dashboard/stats
"""
from spk.api import api_handler
from spk.payroll import PayrollReporter
from spk.service import get_store
from spk.utils import format_response


@api_handler
def handler(event, context, actor):
    stats = PayrollReporter(get_store()).dashboard_stats(actor)
    return format_response(200, {'stats': stats})
