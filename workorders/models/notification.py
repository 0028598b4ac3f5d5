# workorders/models/notification.py
from workorders.extensions import db
from workorders.utils import iso_format

NOTIFICATION_TYPES = ('approval', 'rejection', 'completion', 'info')


class Notification(db.Model):
    """ 站内通知 """
    __tablename__ = 'notifications'
    __table_args__ = (
        db.CheckConstraint("type IN ('approval', 'rejection', 'completion', 'info')",
                           name='notifications_type_check'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False, default='info')
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    related_entity_type = db.Column(db.String(50))
    related_entity_id = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'is_read': bool(self.is_read),
            'related_entity_type': self.related_entity_type,
            'related_entity_id': self.related_entity_id,
            'created_at': iso_format(self.created_at),
            'expires_at': iso_format(self.expires_at),
        }
