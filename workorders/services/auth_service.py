# workorders/services/auth_service.py
from datetime import datetime, timedelta

from flask import current_app

from workorders.extensions import db
from workorders.errors import NotFound, ValidationError, Unauthorized
from workorders.models import User, ROLE_HIERARCHY, ROLE_USER
from workorders.utils import require_text


class AuthService:
    """
    登录校验与用户管理
    安全策略: 连续失败 LOGIN_MAX_FAILURES 次后锁定 LOGIN_LOCK_MINUTES 分钟
    """

    @staticmethod
    def authenticate(username, password):
        if not username or not password:
            raise ValidationError('Username and password are required')

        user = User.query.filter_by(username=username).first()
        if user is None:
            # 用户不存在时提示通用错误
            raise Unauthorized('Invalid credentials')

        # 检查账号是否处于锁定状态
        if user.locked_until:
            if datetime.now() < user.locked_until:
                wait_minutes = int((user.locked_until - datetime.now()).total_seconds() / 60) + 1
                raise Unauthorized(f'Account locked after repeated failures, try again in {wait_minutes} minutes')
            # 锁定时间已过，自动解锁
            user.locked_until = None
            user.failed_login_count = 0

        if user.check_password(password):
            user.failed_login_count = 0
            user.locked_until = None
            db.session.commit()
            return user

        max_failures = current_app.config['LOGIN_MAX_FAILURES']
        user.failed_login_count = (user.failed_login_count or 0) + 1
        if user.failed_login_count >= max_failures:
            user.locked_until = datetime.now() + timedelta(minutes=current_app.config['LOGIN_LOCK_MINUTES'])
            db.session.commit()
            current_app.logger.warning('User %s locked after %s failed logins', username, max_failures)
            raise Unauthorized('Too many failed attempts, account has been locked')
        db.session.commit()
        raise Unauthorized('Invalid credentials')

    @staticmethod
    def change_password(user, current_password, new_password):
        if not current_password or not new_password:
            raise ValidationError('Current password and new password are required')
        if len(new_password) < 6:
            raise ValidationError('New password must be at least 6 characters')
        if not user.check_password(current_password):
            raise ValidationError('Current password is incorrect')
        user.set_password(new_password)
        user.first_login = False
        db.session.commit()
        return user

    @staticmethod
    def list_users():
        return User.query.order_by(User.username).all()

    @staticmethod
    def create_user(data):
        username = require_text(data, 'username', 50, 'Username')
        first_name = require_text(data, 'first_name', 100, 'First name')
        last_name = require_text(data, 'last_name', 100, 'Last name')
        password = data.get('password')
        if not password:
            raise ValidationError('Username, first name, last name, and password are required')
        role = data.get('role') or ROLE_USER
        if role not in ROLE_HIERARCHY:
            raise ValidationError('Invalid role. Must be user, admin, or superadmin')
        if User.query.filter_by(username=username).first():
            raise ValidationError('Username already exists')

        user = User(username=username, first_name=first_name, last_name=last_name, role=role)
        user.set_password(password)
        try:
            db.session.add(user)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return user

    @staticmethod
    def set_role(user_id, role):
        if role not in ROLE_HIERARCHY:
            raise ValidationError('Invalid role. Must be user, admin, or superadmin')
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFound('User not found')
        user.role = role
        db.session.commit()
        return user
