# workorders/services/notification_service.py
from datetime import datetime, timedelta
from flask import current_app
from workorders.extensions import db
from workorders.errors import NotFound, ValidationError
from workorders.models import Notification, User, NOTIFICATION_TYPES


class NotificationService:
    """
    站内通知: 生成 -> 已读 -> 过期清理
    """

    @staticmethod
    def build(user_id, title, message, type_='info', work_order_id=None, session=None):
        """
        创建通知但不提交，由调用方决定事务边界 (工单状态变更与通知同一事务)
        """
        session = session or db.session
        now = datetime.now()
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type_,
            related_entity_type='work_order' if work_order_id is not None else None,
            related_entity_id=work_order_id,
            created_at=now,
            expires_at=now + timedelta(days=current_app.config['NOTIFICATION_TTL_DAYS'])
        )
        session.add(notification)
        return notification

    @staticmethod
    def create(data):
        """ 管理员手动创建通知 """
        user_id = data.get('user_id')
        title = (data.get('title') or '').strip()
        message = (data.get('message') or '').strip()
        type_ = data.get('type')

        if not user_id or not title or not message or not type_:
            raise ValidationError('User ID, title, message, and type are required')
        if type_ not in NOTIFICATION_TYPES:
            raise ValidationError(f'Invalid notification type: {type_}')
        if db.session.get(User, user_id) is None:
            raise NotFound('User not found')

        notification = NotificationService.build(user_id, title, message, type_)
        if data.get('related_entity_type'):
            notification.related_entity_type = data['related_entity_type']
            notification.related_entity_id = data.get('related_entity_id')
        db.session.commit()
        return notification

    @staticmethod
    def cleanup_expired():
        """ 删除已过期通知，返回删除条数 """
        deleted = Notification.query.filter(Notification.expires_at < datetime.now()) \
            .delete(synchronize_session=False)
        db.session.commit()
        if deleted:
            current_app.logger.info('Cleaned up %s expired notifications', deleted)
        return deleted

    @staticmethod
    def list_for_user(user_id):
        NotificationService.cleanup_expired()
        return Notification.query.filter_by(user_id=user_id) \
            .order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def mark_read(notification_id, user_id):
        notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if notification is None:
            raise NotFound('Notification not found')
        notification.is_read = True
        db.session.commit()
        return notification

    @staticmethod
    def mark_all_read(user_id):
        updated = Notification.query.filter_by(user_id=user_id, is_read=False) \
            .update({'is_read': True}, synchronize_session=False)
        db.session.commit()
        return updated
