# workorders/blueprints/reports.py
from flask import Blueprint, request, send_file
from flask_login import login_required
from workorders.decorators import role_required
from workorders.models import ROLE_ADMIN
from workorders.responses import ok
from workorders.utils import parse_int
from workorders.services.report_service import ReportService, XLSX_MIMETYPE

bp = Blueprint('reports', __name__)


@bp.route('/progress')
@role_required(ROLE_ADMIN)
def progress_report():
    """
    进度周报 (Excel)
    参数: fromDate / toDate (YYYY-MM-DD)
    """
    filename, output = ReportService.progress_report(
        request.args.get('fromDate') or request.args.get('from'),
        request.args.get('toDate') or request.args.get('to'))
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


@bp.route('/technician-performance')
@role_required(ROLE_ADMIN)
def technician_performance():
    """
    技术员绩效
    export=excel 时返回 Excel 文件，否则返回 JSON
    """
    date_from = request.args.get('date_from')
    date_to = request.args.get('date_to')
    if request.args.get('export') == 'excel':
        filename, output = ReportService.technician_performance_excel(date_from, date_to)
        return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
    return ok(ReportService.technician_performance(date_from, date_to))


@bp.route('/work-order-sheet')
@login_required
def work_order_sheet():
    """ 单张工单作业单 (Excel)，参数 workOrderId """
    work_order_id = parse_int(request.args.get('workOrderId'), 'work order ID', minimum=1)
    filename, output = ReportService.work_order_sheet(work_order_id)
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


@bp.route('/job-allocation')
@role_required(ROLE_ADMIN)
def job_allocation():
    """
    派工日报 (Excel)
    参数: fromDate / toDate (YYYY-MM-DD)，区间内没有措施时返回 404
    """
    filename, output = ReportService.job_allocation_report(
        request.args.get('fromDate') or request.args.get('from'),
        request.args.get('toDate') or request.args.get('to'))
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


@bp.route('/summary')
@login_required
def summary():
    search = request.args.get('search')
    date_from = request.args.get('date_from')
    date_to = request.args.get('date_to')
    if request.args.get('export') == 'excel':
        filename, output = ReportService.summary_report(search, date_from, date_to)
        return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
    return ok(ReportService.summary_rows(search, date_from, date_to))
