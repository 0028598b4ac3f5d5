# workorders/blueprints/notifications.py
from flask import Blueprint
from flask_login import login_required, current_user
from workorders.decorators import role_required
from workorders.models import ROLE_ADMIN
from workorders.responses import ok, json_body
from workorders.services.notification_service import NotificationService

bp = Blueprint('notifications', __name__)


@bp.route('')
@login_required
def notification_list():
    """ 当前用户的通知 (先清理过期数据) """
    notifications = NotificationService.list_for_user(current_user.id)
    return ok({
        'notifications': [n.to_dict() for n in notifications],
        'unread_count': NotificationService.unread_count(current_user.id),
    })


@bp.route('/<int:notification_id>/read', methods=['PUT'])
@login_required
def mark_read(notification_id):
    return ok(NotificationService.mark_read(notification_id, current_user.id).to_dict())


@bp.route('/read-all', methods=['PUT'])
@login_required
def mark_all_read():
    return ok({'updated': NotificationService.mark_all_read(current_user.id)})


@bp.route('', methods=['POST'])
@role_required(ROLE_ADMIN)
def create():
    return ok(NotificationService.create(json_body()).to_dict(), status=201)


@bp.route('/cleanup', methods=['POST'])
@role_required(ROLE_ADMIN)
def cleanup():
    deleted = NotificationService.cleanup_expired()
    return ok({'deleted_count': deleted}, message=f'Cleaned up {deleted} expired notifications')
