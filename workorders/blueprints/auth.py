# workorders/blueprints/auth.py
from flask import Blueprint, session
from flask_login import login_user, logout_user, login_required, current_user
from workorders.responses import ok, json_body
from workorders.services.auth_service import AuthService

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['POST'])
def login():
    """
    系统登录
    安全策略: 密码哈希校验 + 连续失败锁定
    """
    data = json_body()
    user = AuthService.authenticate(data.get('username'), data.get('password'))

    # 启用会话超时控制 (配合 Config.PERMANENT_SESSION_LIFETIME)
    session.permanent = True
    login_user(user)
    return ok({'user': user.to_dict()}, message=f'Welcome back, {user.first_name or user.username}')


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return ok(message='Logged out')


@bp.route('/me')
@login_required
def me():
    return ok(current_user.to_dict())


@bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = json_body()
    AuthService.change_password(current_user, data.get('current_password'), data.get('new_password'))
    return ok(current_user.to_dict(), message='Password changed successfully')
