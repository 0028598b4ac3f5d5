# workorders/services/finding_service.py
from workorders.extensions import db
from workorders.errors import NotFound, ValidationError, InvalidTransition, Forbidden
from workorders.models import (
    Finding, Action, SparePart, TechnicianAssignment, Technician, Unit,
    ROLE_ADMIN, STATUS_COMPLETED
)
from workorders.services.work_order_service import WorkOrderService
from workorders.utils import parse_bool, parse_date, parse_time, parse_int, require_text


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _get_or_404(model, pk, label):
    obj = db.session.get(model, pk)
    if obj is None:
        raise NotFound(f'{label} not found')
    return obj


class FindingService:
    """
    工单下的检查发现 / 处理措施 / 备件 / 作业人员
    普通的一对多记录，不参与状态机
    """

    # ================= 检查发现 =================
    @staticmethod
    def create_finding(data):
        work_order_id = parse_int(data.get('work_order_id'), 'work order ID', minimum=1)
        description = require_text(data, 'description', 1000, 'Finding description')

        order = WorkOrderService.get(work_order_id)
        if order.status == STATUS_COMPLETED:
            raise InvalidTransition('Cannot add findings to completed work orders')

        finding = Finding(work_order_id=order.id, description=description,
                          reference_image=data.get('reference_image') or None)
        db.session.add(finding)
        _commit()
        return finding

    @staticmethod
    def list_findings(work_order_id):
        WorkOrderService.get(work_order_id)
        return Finding.query.filter_by(work_order_id=work_order_id).order_by(Finding.id).all()

    @staticmethod
    def delete_finding(finding_id):
        finding = _get_or_404(Finding, finding_id, 'Finding')
        db.session.delete(finding)
        _commit()

    # ================= 处理措施 =================
    @staticmethod
    def create_action(data):
        finding_id = parse_int(data.get('finding_id'), 'finding ID', minimum=1)
        description = require_text(data, 'description', 1000, 'Action description')
        if not data.get('action_date') or not data.get('start_time'):
            raise ValidationError('finding_id, description, action_date and start_time are required')

        action_date = parse_date(data['action_date'], 'action date')
        start_time = parse_time(data['start_time'], 'start time')
        end_time = parse_time(data['end_time'], 'end time') if data.get('end_time') else None
        if end_time is not None and start_time >= end_time:
            raise ValidationError('End time must be after start time')

        finding = _get_or_404(Finding, finding_id, 'Finding')
        order = finding.work_order
        if order.status == STATUS_COMPLETED:
            raise InvalidTransition('Cannot add actions to completed work orders')
        if action_date < order.work_order_date:
            raise ValidationError('Action date cannot be before work order date '
                                  f'({order.work_order_date.strftime("%d/%m/%Y")})')

        action = Action(
            finding_id=finding.id,
            description=description,
            action_date=action_date,
            start_time=start_time,
            end_time=end_time,
            is_completed=parse_bool(data.get('is_completed', False), 'is_completed'),
            remarks=data.get('remarks') or None
        )
        db.session.add(action)
        _commit()
        return action

    @staticmethod
    def update_action_progress(action_id, data, actor):
        """
        补填结束时间 / 标记完成
        已完工工单的措施不可再改；撤销完成标记或清空结束时间需要管理员
        """
        action = _get_or_404(Action, action_id, 'Action')
        if action.finding.work_order.status == STATUS_COMPLETED:
            raise InvalidTransition('Cannot update actions of completed work orders')

        is_admin = actor.has_role_at_least(ROLE_ADMIN)
        if 'is_completed' in data:
            is_completed = parse_bool(data['is_completed'], 'is_completed')
            if action.is_completed and not is_completed and not is_admin:
                raise Forbidden('Only admins can revert completion')
            action.is_completed = is_completed
        if 'end_time' in data:
            end_time = parse_time(data['end_time'], 'end time') if data['end_time'] else None
            if end_time is None and action.end_time is not None and not is_admin:
                raise Forbidden('Only admins can clear an end time')
            if end_time is not None and action.start_time >= end_time:
                raise ValidationError('End time must be after start time')
            action.end_time = end_time
        if 'remarks' in data:
            action.remarks = data['remarks'] or None
        _commit()
        return action

    @staticmethod
    def delete_action(action_id):
        action = _get_or_404(Action, action_id, 'Action')
        db.session.delete(action)
        _commit()

    # ================= 备件 =================
    @staticmethod
    def _spare_part_fields(data):
        part_name = require_text(data, 'part_name', 200, 'Part name')
        part_number = require_text(data, 'part_number', 100, 'Part number')
        try:
            quantity = int(data.get('quantity'))
        except (TypeError, ValueError):
            quantity = 0
        if quantity <= 0:
            raise ValidationError('Quantity must be a positive number')

        # 单位可选，填写时必须是单位表中已有的名称
        unit = (data.get('unit') or '').strip() or None
        if unit and not Unit.query.filter_by(name=unit).first():
            raise ValidationError(f'Unknown unit: {unit}')
        return {'part_name': part_name, 'part_number': part_number,
                'quantity': quantity, 'unit': unit}

    @staticmethod
    def create_spare_part(data):
        action_id = parse_int(data.get('action_id'), 'action ID', minimum=1)
        fields = FindingService._spare_part_fields(data)

        _get_or_404(Action, action_id, 'Action')
        part = SparePart(action_id=action_id, **fields)
        db.session.add(part)
        _commit()
        return part

    @staticmethod
    def update_spare_part(part_id, data):
        part = _get_or_404(SparePart, part_id, 'Spare part')
        for key, value in FindingService._spare_part_fields(data).items():
            setattr(part, key, value)
        _commit()
        return part

    @staticmethod
    def list_spare_parts(action_id):
        _get_or_404(Action, action_id, 'Action')
        return SparePart.query.filter_by(action_id=action_id).order_by(SparePart.id).all()

    @staticmethod
    def delete_spare_part(part_id):
        part = _get_or_404(SparePart, part_id, 'Spare part')
        db.session.delete(part)
        _commit()

    # ================= 作业人员 =================
    @staticmethod
    def assign_technician(action_id, data):
        """
        可以传 technician_id (从台账带出姓名工号)，也可以直接传 name + staff_id
        """
        _get_or_404(Action, action_id, 'Action')
        technician_id = data.get('technician_id')
        name = (data.get('name') or '').strip()
        staff_id = (data.get('staff_id') or '').strip()

        if technician_id:
            technician = _get_or_404(Technician, technician_id, 'Technician')
            name, staff_id = technician.name, technician.staff_id
        if not name or not staff_id:
            raise ValidationError('Provide technician_id or name and staff_id')

        if TechnicianAssignment.query.filter_by(action_id=action_id, staff_id=staff_id).first():
            raise ValidationError('Technician already added')

        assignment = TechnicianAssignment(action_id=action_id, technician_id=technician_id or None,
                                          name=name, staff_id=staff_id)
        db.session.add(assignment)
        _commit()
        return assignment

    @staticmethod
    def list_assignments(action_id):
        _get_or_404(Action, action_id, 'Action')
        return TechnicianAssignment.query.filter_by(action_id=action_id) \
            .order_by(TechnicianAssignment.id).all()

    @staticmethod
    def remove_assignment(action_id, assignment_id):
        assignment = TechnicianAssignment.query.filter_by(id=assignment_id, action_id=action_id).first()
        if assignment is None:
            raise NotFound('Assignment not found')
        db.session.delete(assignment)
        _commit()
