# workorders/blueprints/dashboard.py
from flask import Blueprint, current_app, send_from_directory
from flask_login import login_required
from workorders.extensions import db
from workorders.responses import ok
from workorders.services.work_order_service import WorkOrderService

bp = Blueprint('dashboard', __name__)


@bp.route('/dashboard/stats')
@login_required
def stats():
    """
    首页统计: 各状态工单数量
    """
    return ok(WorkOrderService.status_counts())


@bp.route('/uploads/<path:filename>')
@login_required
def uploaded_file(filename):
    # send_from_directory 会拒绝目录穿越
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)


@bp.route('/health')
def health():
    db.session.execute(db.text('SELECT 1'))
    return ok({'status': 'ok'})
