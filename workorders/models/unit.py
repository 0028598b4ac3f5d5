# workorders/models/unit.py
from workorders.extensions import db
from workorders.utils import iso_format


class Unit(db.Model):
    """ 备件计量单位 (pcs / ltr / set ...) """
    __tablename__ = 'units'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(32), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_at': iso_format(self.created_at),
            'updated_at': iso_format(self.updated_at),
        }
