# workorders/extensions.py
from flask import jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager

# 初始化数据库插件
# 在这里创建实例，但在 workorders/__init__.py 中通过 db.init_app(app) 进行绑定
db = SQLAlchemy()

# 初始化登录管理插件 (用于处理用户 Session)
login_manager = LoginManager()
login_manager.session_protection = 'strong'


@login_manager.unauthorized_handler
def unauthorized():
    """ 接口型应用: 未登录时返回 401 JSON，而不是跳转登录页 """
    return jsonify({'success': False, 'error': 'Unauthorized'}), 401
