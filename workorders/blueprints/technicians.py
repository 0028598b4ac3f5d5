# workorders/blueprints/technicians.py
from flask import Blueprint, request
from flask_login import login_required
from workorders.decorators import role_required
from workorders.models import ROLE_ADMIN
from workorders.responses import ok, json_body
from workorders.services.technician_service import TechnicianService

bp = Blueprint('technicians', __name__)


@bp.route('')
@login_required
def technician_list():
    available_only = request.args.get('available') in ('1', 'true')
    return ok([t.to_dict() for t in TechnicianService.list(available_only)])


@bp.route('/<int:technician_id>')
@login_required
def detail(technician_id):
    return ok(TechnicianService.get(technician_id).to_dict())


@bp.route('', methods=['POST'])
@role_required(ROLE_ADMIN)
def create():
    return ok(TechnicianService.create(json_body()).to_dict(), status=201)


@bp.route('/<int:technician_id>', methods=['PUT'])
@role_required(ROLE_ADMIN)
def update(technician_id):
    return ok(TechnicianService.update(technician_id, json_body()).to_dict())


@bp.route('/<int:technician_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete(technician_id):
    TechnicianService.delete(technician_id)
    return ok(message='Technician deleted')
