# workorders/blueprints/admin.py
from flask import Blueprint
from workorders.decorators import role_required
from workorders.models import ROLE_SUPERADMIN
from workorders.responses import ok, json_body
from workorders.services.auth_service import AuthService

bp = Blueprint('admin', __name__)


@bp.route('/users')
@role_required(ROLE_SUPERADMIN)
def user_list():
    """ 用户权限管理 """
    return ok([u.to_dict() for u in AuthService.list_users()])


@bp.route('/users', methods=['POST'])
@role_required(ROLE_SUPERADMIN)
def add_user():
    """ 新增用户并分配角色 """
    user = AuthService.create_user(json_body())
    return ok(user.to_dict(), message='User created successfully', status=201)


@bp.route('/users/<int:user_id>/role', methods=['PUT'])
@role_required(ROLE_SUPERADMIN)
def change_role(user_id):
    user = AuthService.set_role(user_id, json_body().get('role'))
    return ok(user.to_dict())
