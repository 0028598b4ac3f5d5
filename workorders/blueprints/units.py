# workorders/blueprints/units.py
from flask import Blueprint
from flask_login import login_required
from workorders.decorators import role_required
from workorders.models import ROLE_ADMIN
from workorders.responses import ok, json_body
from workorders.services.unit_service import UnitService

bp = Blueprint('units', __name__)


@bp.route('')
@login_required
def unit_list():
    return ok([u.to_dict() for u in UnitService.list()])


@bp.route('', methods=['POST'])
@role_required(ROLE_ADMIN)
def create():
    return ok(UnitService.create(json_body()).to_dict(), status=201)


@bp.route('/<int:unit_id>', methods=['PUT'])
@role_required(ROLE_ADMIN)
def rename(unit_id):
    return ok(UnitService.rename(unit_id, json_body()).to_dict())


@bp.route('/<int:unit_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete(unit_id):
    UnitService.delete(unit_id)
    return ok(message='Unit deleted')
