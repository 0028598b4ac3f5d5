# workorders/blueprints/work_orders.py
from flask import Blueprint, request
from flask_login import login_required, current_user
from workorders.decorators import role_required
from workorders.errors import ValidationError
from workorders.models import ROLE_ADMIN
from workorders.responses import ok, json_body
from workorders.services import lifecycle
from workorders.services.lifecycle import LifecycleManager
from workorders.services.document_service import DocumentService
from workorders.services.work_order_service import WorkOrderService

bp = Blueprint('work_orders', __name__)


def _detail(order):
    data = order.to_dict(include_children=True)
    data['allowed_events'] = lifecycle.allowed_events(order, current_user)
    return data


@bp.route('', methods=['GET'])
@login_required
def work_order_list():
    """
    工单列表
    支持 status / search / startDate / endDate / page / limit / sortBy / sortOrder
    """
    result = WorkOrderService.list(request.args)
    return ok({
        'work_orders': [o.to_dict() for o in result['items']],
        'pagination': result['pagination'],
    })


@bp.route('', methods=['POST'])
@login_required
def create():
    order = WorkOrderService.create(json_body(), current_user)
    return ok(order.to_dict(), message='Work order created successfully', status=201)


@bp.route('/<int:work_order_id>', methods=['GET'])
@login_required
def detail(work_order_id):
    return ok(_detail(WorkOrderService.get(work_order_id)))


@bp.route('/<int:work_order_id>', methods=['PUT'])
@login_required
def update(work_order_id):
    order = WorkOrderService.update(work_order_id, json_body(), current_user)
    return ok(order.to_dict(), message='Work order updated successfully')


# ============= 状态流转 =============
def _transition(work_order_id, event, message, **data):
    order = LifecycleManager().apply(work_order_id, event, current_user, **data)
    return ok(order.to_dict(), message=message)


@bp.route('/<int:work_order_id>/approve', methods=['PUT'])
@login_required
def approve(work_order_id):
    return _transition(work_order_id, lifecycle.APPROVE, 'Work order approved successfully')


@bp.route('/<int:work_order_id>/reject', methods=['PUT'])
@login_required
def reject(work_order_id):
    return _transition(work_order_id, lifecycle.REJECT, 'Work order rejected successfully',
                       reason=json_body().get('reason'))


@bp.route('/<int:work_order_id>/resubmit', methods=['PUT'])
@login_required
def resubmit(work_order_id):
    return _transition(work_order_id, lifecycle.RESUBMIT, 'Work order resubmitted successfully')


@bp.route('/<int:work_order_id>/complete', methods=['PUT'])
@login_required
def request_completion(work_order_id):
    return _transition(work_order_id, lifecycle.REQUEST_COMPLETION, 'Completion requested',
                       work_completed_date=json_body().get('work_completed_date'))


@bp.route('/<int:work_order_id>/approve-completion', methods=['PUT'])
@login_required
def approve_completion(work_order_id):
    """ approved=true 审批通过，approved=false 驳回并必须填写 rejection_reason """
    data = json_body()
    approved = data.get('approved')
    if not isinstance(approved, bool):
        raise ValidationError('Approval status is required')
    if approved:
        return _transition(work_order_id, lifecycle.APPROVE_COMPLETION, 'Completion approved')
    return _transition(work_order_id, lifecycle.REJECT_COMPLETION, 'Completion rejected',
                       reason=data.get('rejection_reason'))


# ============= 参考文件 =============
@bp.route('/<int:work_order_id>/reference-document', methods=['PUT'])
@role_required(ROLE_ADMIN)
def upload_reference(work_order_id):
    order = DocumentService.replace(work_order_id, request.files.get('reference_document'))
    return ok(order.to_dict(), message='Reference document updated successfully')


@bp.route('/<int:work_order_id>/reference-document', methods=['DELETE'])
@role_required(ROLE_ADMIN)
def delete_reference(work_order_id):
    order = DocumentService.delete(work_order_id)
    return ok(order.to_dict(), message='Reference document deleted successfully')
