# workorders/__init__.py
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from workorders.extensions import db, login_manager
from workorders.errors import WorkOrderError


def register_error_handlers(app):
    """ 业务异常 -> JSON；未预期异常只记录日志，不把内部细节返回给调用方 """

    @app.errorhandler(WorkOrderError)
    def handle_work_order_error(e):
        if e.status_code >= 500:
            app.logger.error('Work order error: %s', e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'error': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        app.logger.exception('Unhandled error: %s', e)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


def create_app(config_object='config.Config'):
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # 2. 初始化插件
    db.init_app(app)
    login_manager.init_app(app)

    # 3. 显式导入 models，触发 user_loader 注册
    # 必须放在 db.init_app 之后，注册蓝图之前
    from workorders import models  # noqa: F401

    # 4. 注册蓝图
    from workorders.blueprints import (
        auth_bp, admin_bp, dashboard_bp, work_orders_bp, findings_bp,
        technicians_bp, notifications_bp, reports_bp, units_bp
    )

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(work_orders_bp, url_prefix='/work-orders')
    app.register_blueprint(findings_bp)
    app.register_blueprint(technicians_bp, url_prefix='/technicians')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(reports_bp, url_prefix='/reports')
    app.register_blueprint(units_bp, url_prefix='/units')

    register_error_handlers(app)

    return app
