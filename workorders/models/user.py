# workorders/models/user.py
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from workorders.extensions import db
from workorders.extensions import login_manager

# 角色等级: 数值越大权限越高
ROLE_USER = 'user'
ROLE_ADMIN = 'admin'
ROLE_SUPERADMIN = 'superadmin'
ROLE_HIERARCHY = (ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN)


def role_level(role):
    return ROLE_HIERARCHY.index(role) if role in ROLE_HIERARCHY else -1


class User(UserMixin, db.Model):
    """
    用户表
    """
    __tablename__ = 'users'
    __table_args__ = (
        db.CheckConstraint("role IN ('superadmin', 'admin', 'user')", name='users_role_check'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    username = db.Column(db.String(50), unique=True, nullable=False, comment='用户名')
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False, comment='加密密码')
    role = db.Column(db.String(20), nullable=False, default=ROLE_USER)
    first_login = db.Column(db.Boolean, default=True)

    # 登录失败计数与锁定时间
    failed_login_count = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def has_role_at_least(self, min_role):
        return role_level(self.role) >= role_level(min_role)

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'.strip()

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'first_login': bool(self.first_login),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.username}>'


@login_manager.user_loader
def load_user(user_id):
    """
    Flask-Login 需要此函数来根据 Session 中的 ID 获取用户对象
    """
    if user_id is None or user_id == 'None':
        return None
    return db.session.get(User, int(user_id))
