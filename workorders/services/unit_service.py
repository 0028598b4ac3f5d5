# workorders/services/unit_service.py
from workorders.extensions import db
from workorders.errors import NotFound, ValidationError
from workorders.models import Unit, SparePart
from workorders.utils import require_text


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


class UnitService:
    """
    备件计量单位
    备件按名称引用单位，改名时同步更新，被引用时不可删除
    """

    @staticmethod
    def list():
        return Unit.query.order_by(Unit.name).all()

    @staticmethod
    def get(unit_id):
        unit = db.session.get(Unit, unit_id)
        if unit is None:
            raise NotFound('Unit not found')
        return unit

    @staticmethod
    def _name(data, exclude_id=None):
        name = require_text(data, 'name', 32, 'Unit name')
        existing = Unit.query.filter_by(name=name).first()
        if existing is not None and existing.id != exclude_id:
            raise ValidationError('Unit already exists')
        return name

    @staticmethod
    def create(data):
        unit = Unit(name=UnitService._name(data))
        db.session.add(unit)
        _commit()
        return unit

    @staticmethod
    def rename(unit_id, data):
        unit = UnitService.get(unit_id)
        name = UnitService._name(data, exclude_id=unit.id)
        if name != unit.name:
            SparePart.query.filter_by(unit=unit.name) \
                .update({'unit': name}, synchronize_session=False)
            unit.name = name
        _commit()
        return unit

    @staticmethod
    def delete(unit_id):
        unit = UnitService.get(unit_id)
        in_use = SparePart.query.filter_by(unit=unit.name).count()
        if in_use:
            raise ValidationError(f'Unit is used by {in_use} spare part(s)')
        db.session.delete(unit)
        _commit()
