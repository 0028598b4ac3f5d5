# workorders/blueprints/findings.py
from flask import Blueprint
from flask_login import login_required, current_user
from workorders.decorators import role_required
from workorders.models import ROLE_ADMIN
from workorders.responses import ok, json_body
from workorders.services.finding_service import FindingService

bp = Blueprint('findings', __name__)


# ============= 检查发现 =============
@bp.route('/work-orders/<int:work_order_id>/findings')
@login_required
def finding_list(work_order_id):
    findings = FindingService.list_findings(work_order_id)
    return ok([f.to_dict(include_children=True) for f in findings])


@bp.route('/findings', methods=['POST'])
@role_required(ROLE_ADMIN)
def add_finding():
    return ok(FindingService.create_finding(json_body()).to_dict(), status=201)


@bp.route('/findings/<int:finding_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete_finding(finding_id):
    FindingService.delete_finding(finding_id)
    return ok(message='Finding deleted')


# ============= 处理措施 =============
@bp.route('/actions', methods=['POST'])
@role_required(ROLE_ADMIN)
def add_action():
    return ok(FindingService.create_action(json_body()).to_dict(), status=201)


@bp.route('/actions/<int:action_id>', methods=['PUT'])
@login_required
def update_action(action_id):
    """ 补填结束时间 / 标记完成 """
    action = FindingService.update_action_progress(action_id, json_body(), current_user)
    return ok(action.to_dict(include_children=True))


@bp.route('/actions/<int:action_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete_action(action_id):
    FindingService.delete_action(action_id)
    return ok(message='Action deleted')


# ============= 备件 =============
@bp.route('/actions/<int:action_id>/spare-parts')
@login_required
def spare_part_list(action_id):
    return ok([p.to_dict() for p in FindingService.list_spare_parts(action_id)])


@bp.route('/spare-parts', methods=['POST'])
@role_required(ROLE_ADMIN)
def add_spare_part():
    return ok(FindingService.create_spare_part(json_body()).to_dict(), status=201)


@bp.route('/spare-parts/<int:part_id>', methods=['PUT'])
@role_required(ROLE_ADMIN)
def update_spare_part(part_id):
    return ok(FindingService.update_spare_part(part_id, json_body()).to_dict())


@bp.route('/spare-parts/<int:part_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete_spare_part(part_id):
    FindingService.delete_spare_part(part_id)
    return ok(message='Spare part deleted')


# ============= 作业人员 =============
@bp.route('/actions/<int:action_id>/technicians')
@login_required
def assignment_list(action_id):
    return ok([t.to_dict() for t in FindingService.list_assignments(action_id)])


@bp.route('/actions/<int:action_id>/technicians', methods=['POST'])
@login_required
def assign_technician(action_id):
    assignment = FindingService.assign_technician(action_id, json_body())
    return ok(assignment.to_dict(), status=201)


@bp.route('/actions/<int:action_id>/technicians/<int:assignment_id>', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def remove_technician(action_id, assignment_id):
    FindingService.remove_assignment(action_id, assignment_id)
    return ok(message='Technician removed')
