# workorders/models/__init__.py
from .user import User, ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_HIERARCHY, role_level
from .work_order import (
    WorkOrder, Finding, Action, SparePart, TechnicianAssignment,
    STATUS_PENDING, STATUS_ONGOING, STATUS_COMPLETION_REQUESTED,
    STATUS_COMPLETED, STATUS_REJECTED, WORK_ORDER_STATUSES, OPEN_STATUSES
)
from .technician import Technician
from .notification import Notification, NOTIFICATION_TYPES
from .unit import Unit
