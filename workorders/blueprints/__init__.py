# workorders/blueprints/__init__.py
from .auth import bp as auth_bp
from .admin import bp as admin_bp
from .dashboard import bp as dashboard_bp
from .work_orders import bp as work_orders_bp
from .findings import bp as findings_bp
from .technicians import bp as technicians_bp
from .notifications import bp as notifications_bp
from .reports import bp as reports_bp
from .units import bp as units_bp
