# workorders/models/work_order.py
from workorders.extensions import db
from workorders.utils import iso_format

STATUS_PENDING = 'pending'
STATUS_ONGOING = 'ongoing'
STATUS_COMPLETION_REQUESTED = 'completion_requested'
STATUS_COMPLETED = 'completed'
STATUS_REJECTED = 'rejected'

WORK_ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_ONGOING,
    STATUS_COMPLETION_REQUESTED,
    STATUS_COMPLETED,
    STATUS_REJECTED,
)

OPEN_STATUSES = (STATUS_PENDING, STATUS_ONGOING, STATUS_COMPLETION_REQUESTED)


class WorkOrder(db.Model):
    """ 维修工单 """
    __tablename__ = 'work_orders'
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'ongoing', 'completion_requested', 'completed', 'rejected')",
            name='work_orders_status_check'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    work_order_no = db.Column(db.String(50), unique=True, nullable=False)
    work_order_date = db.Column(db.Date, nullable=False)
    equipment_number = db.Column(db.String(100), nullable=False)
    km_hrs = db.Column(db.Integer, comment='里程/小时数，可选')
    requested_by = db.Column(db.String(100), nullable=False)
    requested_by_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    work_type = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    job_allocation_time = db.Column(db.DateTime, nullable=False)
    work_completed_date = db.Column(db.Date)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING)

    # 审批 (pending -> ongoing / rejected)
    approved_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    approved_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)

    # 完工申请与审批
    completion_requested_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    completion_requested_at = db.Column(db.DateTime)
    completion_approved_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    completion_approved_at = db.Column(db.DateTime)
    completion_rejection_reason = db.Column(db.Text)

    reference_document = db.Column(db.String(500), comment='上传的参考文件相对路径')

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    requester = db.relationship('User', foreign_keys=[requested_by_id])
    findings = db.relationship('Finding', backref='work_order', cascade='all, delete-orphan',
                               order_by='Finding.id')

    def to_dict(self, include_children=False):
        data = {
            'id': self.id,
            'work_order_no': self.work_order_no,
            'work_order_date': iso_format(self.work_order_date),
            'equipment_number': self.equipment_number,
            'km_hrs': self.km_hrs,
            'requested_by': self.requested_by,
            'requested_by_id': self.requested_by_id,
            'work_type': self.work_type,
            'description': self.description,
            'job_allocation_time': iso_format(self.job_allocation_time),
            'work_completed_date': iso_format(self.work_completed_date),
            'status': self.status,
            'approved_by': self.approved_by,
            'approved_at': iso_format(self.approved_at),
            'rejection_reason': self.rejection_reason,
            'completion_requested_by': self.completion_requested_by,
            'completion_requested_at': iso_format(self.completion_requested_at),
            'completion_approved_by': self.completion_approved_by,
            'completion_approved_at': iso_format(self.completion_approved_at),
            'completion_rejection_reason': self.completion_rejection_reason,
            'reference_document': self.reference_document,
            'created_at': iso_format(self.created_at),
            'updated_at': iso_format(self.updated_at),
        }
        if include_children:
            data['findings'] = [f.to_dict(include_children=True) for f in self.findings]
        return data

    def __repr__(self):
        return f'<WorkOrder {self.work_order_no} {self.status}>'


class Finding(db.Model):
    """ 检查发现 (工单 一对多) """
    __tablename__ = 'findings'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    work_order_id = db.Column(db.Integer, db.ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False)
    description = db.Column(db.Text, nullable=False)
    reference_image = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    actions = db.relationship('Action', backref='finding', cascade='all, delete-orphan',
                              order_by='Action.id')

    def to_dict(self, include_children=False):
        data = {
            'id': self.id,
            'work_order_id': self.work_order_id,
            'description': self.description,
            'reference_image': self.reference_image,
            'created_at': iso_format(self.created_at),
        }
        if include_children:
            data['actions'] = [a.to_dict(include_children=True) for a in self.actions]
        return data


class Action(db.Model):
    """ 处理措施 (检查发现 一对多)，一条记录对应一次作业时段 """
    __tablename__ = 'actions'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    finding_id = db.Column(db.Integer, db.ForeignKey('findings.id', ondelete='CASCADE'), nullable=False)
    description = db.Column(db.Text, nullable=False)
    action_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    remarks = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    spare_parts = db.relationship('SparePart', backref='action', cascade='all, delete-orphan',
                                  order_by='SparePart.id')
    technicians = db.relationship('TechnicianAssignment', backref='action', cascade='all, delete-orphan',
                                  order_by='TechnicianAssignment.id')

    @property
    def duration_minutes(self):
        """ 作业时长 (分钟)，未填结束时间时为 0 """
        if self.start_time is None or self.end_time is None:
            return 0
        start = self.start_time.hour * 60 + self.start_time.minute
        end = self.end_time.hour * 60 + self.end_time.minute
        return max(end - start, 0)

    def to_dict(self, include_children=False):
        data = {
            'id': self.id,
            'finding_id': self.finding_id,
            'description': self.description,
            'action_date': iso_format(self.action_date),
            'start_time': iso_format(self.start_time),
            'end_time': iso_format(self.end_time),
            'is_completed': bool(self.is_completed),
            'remarks': self.remarks,
        }
        if include_children:
            data['spare_parts'] = [p.to_dict() for p in self.spare_parts]
            data['technicians'] = [t.to_dict() for t in self.technicians]
        return data


class SparePart(db.Model):
    """ 备件消耗 """
    __tablename__ = 'spare_parts'
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    action_id = db.Column(db.Integer, db.ForeignKey('actions.id', ondelete='CASCADE'), nullable=False)
    part_name = db.Column(db.String(200), nullable=False)
    part_number = db.Column(db.String(100), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32))
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'action_id': self.action_id,
            'part_name': self.part_name,
            'part_number': self.part_number,
            'quantity': self.quantity,
            'unit': self.unit,
        }


class TechnicianAssignment(db.Model):
    """ 作业人员 (措施 多对多 技术员)，保留姓名与工号快照 """
    __tablename__ = 'job_performed_by'
    __table_args__ = (
        db.UniqueConstraint('action_id', 'staff_id', name='job_performed_by_action_staff_key'),
    )
    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    action_id = db.Column(db.Integer, db.ForeignKey('actions.id', ondelete='CASCADE'), nullable=False)
    technician_id = db.Column(db.Integer, db.ForeignKey('technicians.id'))
    name = db.Column(db.String(100), nullable=False)
    staff_id = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'action_id': self.action_id,
            'technician_id': self.technician_id,
            'name': self.name,
            'staff_id': self.staff_id,
        }
