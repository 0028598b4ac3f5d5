# workorders/decorators.py
from functools import wraps
from flask_login import current_user
from workorders.extensions import login_manager
from workorders.errors import Forbidden


def role_required(min_role):
    """
    角色等级校验: user < admin < superadmin
    未登录返回 401，等级不足返回 403
    """
    def decorator(view):
        @wraps(view)
        def wrapped_view(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if not current_user.has_role_at_least(min_role):
                raise Forbidden('Forbidden')
            return view(*args, **kwargs)
        return wrapped_view
    return decorator
