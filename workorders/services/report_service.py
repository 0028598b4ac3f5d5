# workorders/services/report_service.py
import math
import re
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from io import BytesIO

from flask import current_app
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from sqlalchemy import and_, or_

from workorders.extensions import db
from workorders.errors import NotFound, ValidationError
from workorders.models import (
    WorkOrder, Finding, Action, TechnicianAssignment, STATUS_COMPLETED, OPEN_STATUSES
)
from workorders.utils import parse_date

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# ================= 报表分类 =================
REPORT_CATEGORIES = OrderedDict([
    ('fabrication', 'Fabrication'),
    ('wheel_tyre', 'Wheel & Tyre'),
    ('dent_paint', 'Dent & Paint'),
    ('battery_electrical', 'Battery & Electrical'),
    ('uld_containers', 'ULD Containers'),
    ('mechanical', 'Mechanical'),
    ('miscellaneous', 'Miscellaneous'),
])

# 完全匹配 (忽略大小写) 优先
EXACT_MATCHES = {
    'fabrication': 'fabrication',
    'wheel': 'wheel_tyre',
    'tyre': 'wheel_tyre',
    'tire': 'wheel_tyre',
    'dent': 'dent_paint',
    'paint': 'dent_paint',
    'painting': 'dent_paint',
    'battery': 'battery_electrical',
    'electrical': 'battery_electrical',
    'uld': 'uld_containers',
    'uld containers': 'uld_containers',
    'mechanical': 'mechanical',
    'maintenance': 'mechanical',
    'repair': 'mechanical',
    'miscellaneous': 'miscellaneous',
    'others': 'miscellaneous',
}

# 关键词 (正则) 按顺序检查，先命中者生效
# dent / tire 要求从词首匹配: 命中 "dented"，不命中 "incident" / "accident" / "entire"
KEYWORD_RULES = (
    ('fabrication', (r'fabricat', r'welding')),
    ('wheel_tyre', (r'wheel', r'tyre', r'\btire')),
    ('dent_paint', (r'\bdent', r'paint')),
    ('battery_electrical', (r'battery', r'electric')),
    ('uld_containers', (r'uld container', r'container')),
    ('mechanical', (r'mechanic', r'engine', r'hydraulic')),
)

_KEYWORD_PATTERNS = [
    (category, re.compile('|'.join(keywords)))
    for category, keywords in KEYWORD_RULES
]


def categorize(work_type):
    """ 将自由填写的工作类型归入七个报表分类之一 """
    text = (work_type or '').strip().lower()
    if text in EXACT_MATCHES:
        return EXACT_MATCHES[text]
    for category, pattern in _KEYWORD_PATTERNS:
        if pattern.search(text):
            return category
    return 'miscellaneous'


def classify_for_report(order, to_date):
    """
    截至 to_date 该工单算 'completed' 还是 'ongoing'
    已驳回的工单不计入，返回 None
    """
    if order.status == STATUS_COMPLETED:
        approved_at = order.completion_approved_at
        approved_in_time = approved_at is None or approved_at.date() <= to_date
        finished_in_time = order.work_completed_date is None or order.work_completed_date <= to_date
        if approved_in_time and finished_in_time:
            return 'completed'
        return 'ongoing'
    if order.status in OPEN_STATUSES:
        return 'ongoing'
    return None


def week_number(day):
    """ 周数: 以 1 月 1 日所在周为第 1 周，周日为一周起点 """
    first_day = date(day.year, 1, 1)
    first_weekday = (first_day.weekday() + 1) % 7
    past_days = (day - first_day).days
    return math.ceil((past_days + first_weekday + 1) / 7)


def parse_report_range(from_value, to_value):
    if not from_value or not to_value:
        raise ValidationError('From date and to date are required')
    from_date = parse_date(from_value, 'from date')
    to_date = parse_date(to_value, 'to date')
    if from_date > to_date:
        raise ValidationError('From date cannot be after to date')
    return from_date, to_date


def _workbook_bytes(workbook):
    output = BytesIO()
    workbook.save(output)
    output.seek(0)
    return output


# 派工日报中的工作类型代码
WORK_TYPE_CODES = {
    'mechanical': 'M',
    'electrical': 'E',
    'hydraulics': 'H',
    'schedule check': 'SC',
    'electrical repair': 'ER',
    'painting': 'P',
    'miscellaneous': 'MI',
    'customer request': 'CR',
    'other': 'O',
}

# 部分匹配按顺序检查
WORK_TYPE_CODE_RULES = (
    (('electrical', 'repair'), 'ER'),
    (('mechanical',), 'M'),
    (('electrical',), 'E'),
    (('hydraulic',), 'H'),
    (('schedule', 'check'), 'SC'),
    (('paint',), 'P'),
    (('miscellaneous',), 'MI'),
    (('customer',), 'CR'),
)


def work_type_code(work_type):
    text = (work_type or '').strip().lower()
    if not text:
        return ''
    if text in WORK_TYPE_CODES:
        return WORK_TYPE_CODES[text]
    for words, code in WORK_TYPE_CODE_RULES:
        if all(word in text for word in words):
            return code
    return work_type.strip()[:2].upper()


def technician_initials(name):
    """ 'Ali Hassan' -> 'AH'，单个名字取前两个字母 """
    parts = (name or '').split()
    if not parts:
        return ''
    if len(parts) == 1:
        return parts[0][:2].upper()
    return ''.join(part[0] for part in parts).upper()


def format_duration(action):
    """ HH:MM，未填结束时间时为空 """
    if action.end_time is None:
        return ''
    hours, minutes = divmod(action.duration_minutes, 60)
    return f'{hours:02d}:{minutes:02d}'


def _bold_row(sheet, row, values):
    for idx, value in enumerate(values, start=1):
        sheet.cell(row=row, column=idx, value=value).font = Font(bold=True)


class ReportService:
    """
    管理报表: 进度周报、技术员绩效、工单作业单、派工日报、工单汇总
    """

    # ================= 进度周报 =================
    @staticmethod
    def orders_for_range(from_date, to_date):
        """
        1. 在区间内开工的
        2. 区间前开工且仍未完结的
        3. 在区间内完工的
        4. 在区间内审批完工的
        """
        start = datetime.combine(from_date, time.min)
        end = datetime.combine(to_date + timedelta(days=1), time.min)
        return WorkOrder.query.filter(or_(
            and_(WorkOrder.work_order_date >= from_date, WorkOrder.work_order_date <= to_date),
            and_(WorkOrder.work_order_date < from_date, WorkOrder.status.in_(OPEN_STATUSES)),
            and_(WorkOrder.work_completed_date.isnot(None),
                 WorkOrder.work_completed_date >= from_date,
                 WorkOrder.work_completed_date <= to_date),
            and_(WorkOrder.completion_approved_at.isnot(None),
                 WorkOrder.completion_approved_at >= start,
                 WorkOrder.completion_approved_at < end)
        )).order_by(WorkOrder.work_order_date, WorkOrder.work_order_no).all()

    @staticmethod
    def progress_summary(from_date, to_date):
        summary = OrderedDict(
            (category, {'ongoing': [], 'completed': []}) for category in REPORT_CATEGORIES)
        for order in ReportService.orders_for_range(from_date, to_date):
            bucket = classify_for_report(order, to_date)
            if bucket is None:
                continue
            summary[categorize(order.work_type)][bucket].append(order.work_order_no)
        return summary

    @staticmethod
    def build_progress_workbook(summary, from_date, to_date, generated_on=None):
        generated_on = generated_on or date.today()
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = 'Progress Report'

        sheet['A1'] = 'Workshop Progress Report'
        sheet['A1'].font = Font(bold=True, size=14)
        sheet['E1'] = 'Date'
        sheet['F1'] = generated_on.isoformat()
        sheet['E2'] = 'Week'
        sheet['F2'] = week_number(to_date)
        sheet['C3'] = 'From'
        sheet['D3'] = from_date.isoformat()
        sheet['E3'] = 'To'
        sheet['F3'] = to_date.isoformat()

        headers = ['S/N', 'Category', 'Ongoing', 'Completed', 'Total', 'Work Orders']
        for idx, header in enumerate(headers, start=1):
            cell = sheet.cell(row=5, column=idx, value=header)
            cell.font = Font(bold=True)

        row = 6
        for serial, (category, label) in enumerate(REPORT_CATEGORIES.items(), start=1):
            data = summary[category]
            ongoing, completed = data['ongoing'], data['completed']
            sheet.cell(row=row, column=1, value=serial)
            sheet.cell(row=row, column=2, value=label)
            sheet.cell(row=row, column=3, value=len(ongoing))
            sheet.cell(row=row, column=4, value=len(completed))
            sheet.cell(row=row, column=5, value=len(ongoing) + len(completed))

            parts = []
            if ongoing:
                parts.append(f'Ongoing: {", ".join(ongoing)}')
            if completed:
                parts.append(f'Completed: {", ".join(completed)}')
            if parts:
                cell = sheet.cell(row=row, column=6, value='; '.join(parts))
                cell.alignment = Alignment(wrap_text=True)
            row += 1

        for column, width in zip('ABCDEF', (6, 24, 10, 12, 8, 60)):
            sheet.column_dimensions[column].width = width
        return workbook

    @staticmethod
    def progress_report(from_value, to_value):
        """ 返回 (文件名, BytesIO) """
        from_date, to_date = parse_report_range(from_value, to_value)
        summary = ReportService.progress_summary(from_date, to_date)
        workbook = ReportService.build_progress_workbook(summary, from_date, to_date)
        current_app.logger.info('Progress report generated for %s to %s', from_date, to_date)
        filename = f'ProgressReport_{from_date.isoformat()}_to_{to_date.isoformat()}.xlsx'
        return filename, _workbook_bytes(workbook)

    # ================= 技术员绩效 =================
    @staticmethod
    def technician_performance(date_from=None, date_to=None):
        query = db.session.query(Action, TechnicianAssignment) \
            .join(TechnicianAssignment, TechnicianAssignment.action_id == Action.id)
        if date_from:
            query = query.filter(Action.action_date >= parse_date(date_from, 'date_from'))
        if date_to:
            query = query.filter(Action.action_date <= parse_date(date_to, 'date_to'))

        stats = OrderedDict()
        for action, assignment in query.all():
            key = (assignment.technician_id, assignment.name, assignment.staff_id)
            row = stats.setdefault(key, {
                'technician_id': assignment.technician_id,
                'name': assignment.name,
                'staff_id': assignment.staff_id,
                'action_ids': set(),
                'completed_actions': 0,
                'total_minutes': 0,
            })
            row['action_ids'].add(action.id)
            if action.is_completed:
                row['completed_actions'] += 1
            row['total_minutes'] += action.duration_minutes

        rows = []
        for row in stats.values():
            row['actions_worked'] = len(row.pop('action_ids'))
            rows.append(row)
        rows.sort(key=lambda r: (-r['completed_actions'], -r['total_minutes'], r['name']))
        return rows

    @staticmethod
    def build_performance_workbook(rows):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = 'Technician Performance'
        columns = [
            ('Staff ID', 15),
            ('Technician Name', 30),
            ('Actions Worked', 18),
            ('Completed Actions', 20),
            ('Total Hours', 14),
        ]
        for idx, (header, width) in enumerate(columns, start=1):
            cell = sheet.cell(row=1, column=idx, value=header)
            cell.font = Font(bold=True)
            sheet.column_dimensions[cell.column_letter].width = width

        for r in rows:
            sheet.append([
                r['staff_id'],
                r['name'],
                r['actions_worked'],
                r['completed_actions'],
                round(r['total_minutes'] / 60, 2),
            ])
        return workbook

    @staticmethod
    def technician_performance_excel(date_from=None, date_to=None):
        rows = ReportService.technician_performance(date_from, date_to)
        return 'technician-performance.xlsx', _workbook_bytes(ReportService.build_performance_workbook(rows))

    # ================= 工单作业单 =================
    @staticmethod
    def work_order_sheet_data(order):
        """
        作业单内容: 检查发现、处理措施、备件、作业人员
        措施按出现顺序编号，作业人员一栏列出参与的措施编号
        """
        findings = [f.description for f in order.findings if f.description]
        actions, spare_parts, crew = [], [], OrderedDict()
        for finding in order.findings:
            for action in finding.actions:
                actions.append(action)
                number = len(actions)
                spare_parts.extend(action.spare_parts)
                for assignment in action.technicians:
                    member = crew.setdefault((assignment.name, assignment.staff_id), set())
                    member.add(number)

        technicians = [
            {'name': name, 'staff_id': staff_id,
             'actions': ', '.join(str(n) for n in sorted(numbers))}
            for (name, staff_id), numbers in sorted(crew.items())
        ]
        return {
            'findings': findings,
            'actions': [{
                'description': a.description,
                'start_time': a.start_time.strftime('%H:%M') if a.start_time else '',
                'end_time': a.end_time.strftime('%H:%M') if a.end_time else '',
                'action_date': a.action_date.isoformat() if a.action_date else '',
            } for a in actions],
            'spare_parts': [{
                'part_name': p.part_name,
                'part_number': p.part_number,
                'quantity': p.quantity,
                'unit': p.unit or '',
            } for p in spare_parts],
            'technicians': technicians,
        }

    @staticmethod
    def build_work_order_workbook(order):
        data = ReportService.work_order_sheet_data(order)
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = 'Work Order'

        sheet['A1'] = 'Work Order Sheet'
        sheet['A1'].font = Font(bold=True, size=14)
        header = [
            ('Work Order No', order.work_order_no),
            ('Date', order.work_order_date.isoformat()),
            ('Equipment No', order.equipment_number),
            ('KM/Hrs', order.km_hrs if order.km_hrs is not None else 'N/A'),
            ('Work Type', order.work_type),
        ]
        for row, (label, value) in enumerate(header, start=3):
            sheet.cell(row=row, column=1, value=label).font = Font(bold=True)
            sheet.cell(row=row, column=2, value=value)

        sections = [
            ('Findings', ['#', 'Finding'],
             [[d] for d in data['findings']]),
            ('Actions', ['#', 'Action', 'Start', 'End', 'Date'],
             [[a['description'], a['start_time'], a['end_time'], a['action_date']]
              for a in data['actions']]),
            ('Spare Parts', ['#', 'Part Name', 'Part Number', 'Quantity', 'Unit'],
             [[p['part_name'], p['part_number'], p['quantity'], p['unit']]
              for p in data['spare_parts']]),
            ('Technicians', ['#', 'Name', 'Actions', 'Staff ID'],
             [[t['name'], t['actions'], t['staff_id']] for t in data['technicians']]),
        ]
        row = len(header) + 4
        for title, headers, rows in sections:
            sheet.cell(row=row, column=1, value=title).font = Font(bold=True, size=12)
            _bold_row(sheet, row + 1, headers)
            row += 2
            for serial, values in enumerate(rows, start=1):
                sheet.cell(row=row, column=1, value=serial)
                for idx, value in enumerate(values, start=2):
                    sheet.cell(row=row, column=idx, value=value)
                row += 1
            row += 1

        allocated_by = order.requester.full_name if order.requester else ''
        sheet.cell(row=row, column=1, value='Job Requested By:').font = Font(bold=True)
        sheet.cell(row=row, column=2, value=order.requested_by)
        sheet.cell(row=row + 1, column=1, value='Job Allocated By:').font = Font(bold=True)
        sheet.cell(row=row + 1, column=2, value=allocated_by)

        for column, width in zip('ABCDE', (18, 50, 16, 12, 14)):
            sheet.column_dimensions[column].width = width
        return workbook

    @staticmethod
    def work_order_sheet(work_order_id):
        order = db.session.get(WorkOrder, work_order_id)
        if order is None:
            raise NotFound('Work order not found')
        workbook = ReportService.build_work_order_workbook(order)
        filename = f'WorkOrderReport_{order.work_order_no}_{date.today().isoformat()}.xlsx'
        return filename, _workbook_bytes(workbook)

    # ================= 派工日报 =================
    @staticmethod
    def job_allocation_rows(from_date, to_date):
        """ 区间内每条处理措施一行，按日期、工单号排序 """
        query = db.session.query(Action, WorkOrder) \
            .join(Finding, Finding.id == Action.finding_id) \
            .join(WorkOrder, WorkOrder.id == Finding.work_order_id) \
            .filter(Action.action_date >= from_date, Action.action_date <= to_date) \
            .order_by(Action.action_date, WorkOrder.work_order_no, Action.id)

        rows = []
        for action, order in query.all():
            rows.append({
                'action_date': action.action_date.isoformat(),
                'equipment_number': order.equipment_number,
                'work_order_no': order.work_order_no,
                'work_type_code': work_type_code(order.work_type),
                'start_time': action.start_time.strftime('%H:%M'),
                'end_time': action.end_time.strftime('%H:%M') if action.end_time else '',
                'duration': format_duration(action),
                'km_hrs': order.km_hrs if order.km_hrs is not None else '',
                'part_numbers': ', '.join(p.part_number for p in action.spare_parts),
                'quantities': ', '.join(str(p.quantity) for p in action.spare_parts),
                'completed': '✓' if action.is_completed else '',
                'technicians': ', '.join(technician_initials(t.name) for t in action.technicians),
            })
        return rows

    @staticmethod
    def build_job_allocation_workbook(rows, from_date, to_date):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = 'Job Allocation'

        sheet['A1'] = 'Daily Job Allocation'
        sheet['A1'].font = Font(bold=True, size=14)
        sheet['A2'] = f'From {from_date.isoformat()} to {to_date.isoformat()}'

        columns = [
            ('Date', 'action_date', 12),
            ('Equipment No', 'equipment_number', 16),
            ('Job Order No', 'work_order_no', 16),
            ('Work Type', 'work_type_code', 10),
            ('Start', 'start_time', 8),
            ('End', 'end_time', 8),
            ('Duration', 'duration', 10),
            ('KM/Hrs', 'km_hrs', 10),
            ('Part Numbers', 'part_numbers', 24),
            ('Quantities', 'quantities', 12),
            ('Completed', 'completed', 10),
            ('Technicians', 'technicians', 18),
        ]
        _bold_row(sheet, 4, [c[0] for c in columns])
        for idx, (_, _, width) in enumerate(columns, start=1):
            sheet.column_dimensions[sheet.cell(row=4, column=idx).column_letter].width = width
        for row_idx, row in enumerate(rows, start=5):
            for col_idx, (_, key, _) in enumerate(columns, start=1):
                cell = sheet.cell(row=row_idx, column=col_idx, value=row[key])
                if key == 'completed':
                    cell.alignment = Alignment(horizontal='center')
        return workbook

    @staticmethod
    def job_allocation_report(from_value, to_value):
        from_date, to_date = parse_report_range(from_value, to_value)
        rows = ReportService.job_allocation_rows(from_date, to_date)
        if not rows:
            raise NotFound('No actions found for the selected date range')
        workbook = ReportService.build_job_allocation_workbook(rows, from_date, to_date)
        current_app.logger.info('Job allocation report generated for %s to %s (%d rows)',
                                from_date, to_date, len(rows))
        filename = f'JobAllocation_{from_date.isoformat()}_to_{to_date.isoformat()}.xlsx'
        return filename, _workbook_bytes(workbook)

    # ================= 工单汇总 =================
    @staticmethod
    def summary_rows(search=None, date_from=None, date_to=None):
        """ 每张工单一行: 检查发现 / 措施 / 备件 / 作业人员 数量 """
        query = WorkOrder.query
        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                WorkOrder.work_order_no.ilike(pattern),
                WorkOrder.equipment_number.ilike(pattern),
                WorkOrder.work_type.ilike(pattern),
                WorkOrder.requested_by.ilike(pattern),
            ))
        if date_from:
            query = query.filter(WorkOrder.work_order_date >= parse_date(date_from, 'date_from'))
        if date_to:
            query = query.filter(WorkOrder.work_order_date <= parse_date(date_to, 'date_to'))

        rows = []
        for order in query.order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc()).all():
            actions = [a for f in order.findings for a in f.actions]
            rows.append({
                'work_order_no': order.work_order_no,
                'work_order_date': order.work_order_date.isoformat(),
                'equipment_number': order.equipment_number,
                'work_type': order.work_type,
                'status': order.status,
                'findings': len(order.findings),
                'actions': len(actions),
                'spare_parts': sum(len(a.spare_parts) for a in actions),
                'technicians': sum(len(a.technicians) for a in actions),
            })
        return rows

    @staticmethod
    def build_summary_workbook(rows):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = 'Summary'
        headers = ['Work Order No', 'Date', 'Equipment No', 'Work Type', 'Status',
                   'Findings', 'Actions', 'Spare Parts', 'Technicians']
        _bold_row(sheet, 1, headers)
        for r in rows:
            sheet.append([r['work_order_no'], r['work_order_date'], r['equipment_number'],
                          r['work_type'], r['status'], r['findings'], r['actions'],
                          r['spare_parts'], r['technicians']])

        sheet.append([])
        totals = [
            ('Total Work Orders', len(rows)),
            ('Total Findings', sum(r['findings'] for r in rows)),
            ('Total Actions', sum(r['actions'] for r in rows)),
            ('Total Spare Parts', sum(r['spare_parts'] for r in rows)),
            ('Total Technicians', sum(r['technicians'] for r in rows)),
        ]
        for label, value in totals:
            sheet.append([label, value])
            sheet.cell(row=sheet.max_row, column=1).font = Font(bold=True)
        for column, width in zip('ABCDEFGHI', (16, 12, 16, 20, 20, 10, 10, 12, 12)):
            sheet.column_dimensions[column].width = width
        return workbook

    @staticmethod
    def summary_report(search=None, date_from=None, date_to=None):
        rows = ReportService.summary_rows(search, date_from, date_to)
        filename = f'WorkOrderSummary_{date.today().isoformat()}.xlsx'
        return filename, _workbook_bytes(ReportService.build_summary_workbook(rows))
