# workorders/services/work_order_service.py
import math

from flask import current_app
from sqlalchemy import or_

from workorders.extensions import db
from workorders.errors import NotFound, Forbidden, ValidationError, InvalidTransition
from workorders.models import (
    WorkOrder, ROLE_ADMIN, WORK_ORDER_STATUSES, STATUS_PENDING, STATUS_REJECTED
)
from workorders.utils import parse_date, parse_datetime, parse_int, require_text

# 允许排序的字段，防止把任意字符串拼进 ORDER BY
SORTABLE_COLUMNS = {
    'work_order_date': WorkOrder.work_order_date,
    'work_order_no': WorkOrder.work_order_no,
    'equipment_number': WorkOrder.equipment_number,
    'status': WorkOrder.status,
    'created_at': WorkOrder.created_at,
    'job_allocation_time': WorkOrder.job_allocation_time,
}

EDITABLE_FIELDS = ('work_order_date', 'equipment_number', 'km_hrs', 'requested_by',
                   'work_type', 'job_allocation_time', 'description')


def _parse_km_hrs(value):
    if value is None or value == '':
        return None
    return parse_int(value, 'km/hrs', minimum=0)


class WorkOrderService:
    """
    工单的创建、查询与编辑
    状态变更统一走 LifecycleManager
    """

    @staticmethod
    def create(data, actor):
        work_order_no = require_text(data, 'work_order_no', 50, 'Work order number')
        if WorkOrder.query.filter_by(work_order_no=work_order_no).first():
            raise ValidationError(
                f'Work order number "{work_order_no}" already exists. Please use a unique number.')

        order = WorkOrder(
            work_order_no=work_order_no,
            work_order_date=parse_date(data.get('work_order_date'), 'work order date'),
            equipment_number=require_text(data, 'equipment_number', 100, 'Equipment number'),
            km_hrs=_parse_km_hrs(data.get('km_hrs')),
            requested_by=require_text(data, 'requested_by', 100, 'Requested by'),
            requested_by_id=actor.id,
            work_type=require_text(data, 'work_type', 100, 'Work type'),
            job_allocation_time=parse_datetime(data.get('job_allocation_time'), 'job allocation time'),
            description=(data.get('description') or '').strip(),
            status=STATUS_PENDING
        )
        try:
            db.session.add(order)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info('Work order %s created by %s', order.work_order_no, actor.username)
        return order

    @staticmethod
    def get(work_order_id):
        order = db.session.get(WorkOrder, work_order_id)
        if order is None:
            raise NotFound('Work order not found')
        return order

    @staticmethod
    def build_query(status=None, search=None, start_date=None, end_date=None):
        """
        根据可选条件拼接查询
        status 支持逗号分隔的多个值，'all' 表示不过滤
        """
        query = WorkOrder.query

        if status and status != 'all':
            statuses = [s.strip() for s in status.split(',') if s.strip()]
            unknown = [s for s in statuses if s not in WORK_ORDER_STATUSES]
            if unknown:
                raise ValidationError(f'Invalid status: {", ".join(unknown)}')
            if len(statuses) == 1:
                query = query.filter(WorkOrder.status == statuses[0])
            elif statuses:
                query = query.filter(WorkOrder.status.in_(statuses))

        if search:
            pattern = f'%{search.strip()}%'
            query = query.filter(or_(
                WorkOrder.work_order_no.ilike(pattern),
                WorkOrder.equipment_number.ilike(pattern),
                WorkOrder.description.ilike(pattern)
            ))

        if start_date:
            query = query.filter(WorkOrder.work_order_date >= parse_date(start_date, 'start date'))
        if end_date:
            query = query.filter(WorkOrder.work_order_date <= parse_date(end_date, 'end date'))

        return query

    @staticmethod
    def list(args):
        """
        分页列表
        args: request.args 或普通 dict
        """
        max_limit = current_app.config['MAX_PAGE_SIZE']
        page = parse_int(args.get('page') or 1, 'page', minimum=1)
        limit = parse_int(args.get('limit') or current_app.config['DEFAULT_PAGE_SIZE'], 'limit',
                          minimum=1, maximum=max_limit)

        sort_by = args.get('sortBy') or args.get('sort_by') or 'work_order_date'
        if sort_by not in SORTABLE_COLUMNS:
            raise ValidationError(f'Cannot sort by {sort_by}')
        sort_order = (args.get('sortOrder') or args.get('sort_order') or 'desc').lower()
        if sort_order not in ('asc', 'desc'):
            raise ValidationError('Sort order must be asc or desc')

        query = WorkOrderService.build_query(
            status=args.get('status'),
            search=args.get('search'),
            start_date=args.get('startDate') or args.get('start_date'),
            end_date=args.get('endDate') or args.get('end_date')
        )

        total = query.count()
        column = SORTABLE_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == 'asc' else column.desc()
        items = query.order_by(ordering, WorkOrder.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()

        return {
            'items': items,
            'pagination': {
                'current_page': page,
                'total_pages': math.ceil(total / limit) if total else 0,
                'total_items': total,
                'items_per_page': limit,
            }
        }

    @staticmethod
    def update(work_order_id, data, actor):
        """
        编辑工单基本信息，仅限待审批或被驳回的工单
        创建人本人或管理员可编辑，状态与审批字段不可通过此接口修改
        """
        order = WorkOrderService.get(work_order_id)
        if order.status not in (STATUS_PENDING, STATUS_REJECTED):
            raise InvalidTransition('Only pending or rejected work orders can be edited')
        if order.requested_by_id != actor.id and not actor.has_role_at_least(ROLE_ADMIN):
            raise Forbidden('Only the work order creator or an admin can edit it')

        for field in EDITABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field == 'work_order_date':
                value = parse_date(value, 'work order date')
            elif field == 'job_allocation_time':
                value = parse_datetime(value, 'job allocation time')
            elif field == 'km_hrs':
                value = _parse_km_hrs(value)
            elif field == 'description':
                value = (value or '').strip()
            else:
                value = require_text(data, field, 100)
            setattr(order, field, value)

        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return order

    @staticmethod
    def status_counts():
        """ 仪表盘: 各状态工单数量 """
        rows = db.session.query(WorkOrder.status, db.func.count(WorkOrder.id)) \
            .group_by(WorkOrder.status).all()
        counts = {status: 0 for status in WORK_ORDER_STATUSES}
        counts.update({status: count for status, count in rows})
        counts['total'] = sum(counts[s] for s in WORK_ORDER_STATUSES)
        return counts
