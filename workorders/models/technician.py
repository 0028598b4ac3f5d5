# workorders/models/technician.py
from workorders.extensions import db
from workorders.utils import iso_format


class Technician(db.Model):
    """ 技术员台账 """
    __tablename__ = 'technicians'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    staff_id = db.Column(db.String(50), unique=True, nullable=False, comment='工号')
    designation = db.Column(db.String(100))
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    assignments = db.relationship('TechnicianAssignment', backref='technician', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'staff_id': self.staff_id,
            'designation': self.designation,
            'is_available': bool(self.is_available),
            'created_at': iso_format(self.created_at),
        }
