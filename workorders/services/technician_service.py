# workorders/services/technician_service.py
from workorders.extensions import db
from workorders.errors import NotFound, ValidationError
from workorders.models import Technician, TechnicianAssignment
from workorders.utils import parse_bool, require_text


class TechnicianService:
    """
    技术员台账管理
    """

    @staticmethod
    def list(available_only=False):
        query = Technician.query
        if available_only:
            query = query.filter_by(is_available=True)
        return query.order_by(Technician.name).all()

    @staticmethod
    def get(technician_id):
        technician = db.session.get(Technician, technician_id)
        if technician is None:
            raise NotFound('Technician not found')
        return technician

    @staticmethod
    def create(data):
        name = require_text(data, 'name', 100, 'Name')
        staff_id = require_text(data, 'staff_id', 50, 'Staff ID')
        if Technician.query.filter_by(staff_id=staff_id).first():
            raise ValidationError('Staff ID already exists')

        technician = Technician(
            name=name,
            staff_id=staff_id,
            designation=(data.get('designation') or '').strip() or None,
            is_available=parse_bool(data.get('is_available', True), 'is_available')
        )
        try:
            db.session.add(technician)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return technician

    @staticmethod
    def update(technician_id, data):
        technician = TechnicianService.get(technician_id)
        name = require_text(data, 'name', 100, 'Name')
        staff_id = require_text(data, 'staff_id', 50, 'Staff ID')

        duplicate = Technician.query.filter(Technician.staff_id == staff_id,
                                            Technician.id != technician.id).first()
        if duplicate:
            raise ValidationError('Staff ID already exists for another technician')

        if 'is_available' in data:
            technician.is_available = parse_bool(data['is_available'], 'is_available')
        technician.name = name
        technician.staff_id = staff_id
        if 'designation' in data:
            technician.designation = (data.get('designation') or '').strip() or None
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return technician

    @staticmethod
    def delete(technician_id):
        technician = TechnicianService.get(technician_id)
        # 已被派到措施上的技术员不允许删除，保留历史记录
        in_use = TechnicianAssignment.query.filter(
            (TechnicianAssignment.technician_id == technician.id) |
            (TechnicianAssignment.staff_id == technician.staff_id)
        ).count()
        if in_use:
            raise ValidationError('Cannot delete technician who is assigned to work orders')
        try:
            db.session.delete(technician)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
