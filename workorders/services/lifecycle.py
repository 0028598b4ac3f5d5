# workorders/services/lifecycle.py
"""
工单生命周期管理

所有状态变更都经过下面这一张迁移表，接口层不再各自判断状态:

    pending               --approve-------------> ongoing
    pending               --reject--------------> rejected
    rejected              --resubmit------------> pending
    pending / ongoing /
    completion_requested  --request_completion--> completion_requested
    completion_requested  --approve_completion--> completed
    completion_requested  --reject_completion---> ongoing

apply() 的执行顺序固定为: 取记录 -> 校验状态 -> 校验角色/身份 -> 校验参数
-> 带状态条件的 UPDATE -> 写通知，最后两步在同一事务内提交。
UPDATE 语句带 `WHERE id = ? AND status = ?`，并发请求中后到者影响 0 行，
返回 InvalidTransition 而不是覆盖前者的结果。
"""
from collections import namedtuple
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from workorders.extensions import db
from workorders.errors import NotFound, InvalidTransition, Forbidden, ValidationError
from workorders.models import (
    WorkOrder, Finding, Action,
    ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN,
    STATUS_PENDING, STATUS_ONGOING, STATUS_COMPLETION_REQUESTED,
    STATUS_COMPLETED, STATUS_REJECTED,
)
from workorders.services.notification_service import NotificationService
from workorders.utils import parse_date

APPROVE = 'approve'
REJECT = 'reject'
RESUBMIT = 'resubmit'
REQUEST_COMPLETION = 'request_completion'
APPROVE_COMPLETION = 'approve_completion'
REJECT_COMPLETION = 'reject_completion'

# requester_only: 只有工单创建人可以执行
# needs_reason: 必须附带非空的 reason
# notify: 通知类型，None 表示不通知
Transition = namedtuple('Transition', 'event sources target min_role requester_only needs_reason notify')

TRANSITIONS = {
    APPROVE: Transition(APPROVE, (STATUS_PENDING,), STATUS_ONGOING,
                        ROLE_ADMIN, False, False, 'approval'),
    REJECT: Transition(REJECT, (STATUS_PENDING,), STATUS_REJECTED,
                       ROLE_ADMIN, False, True, 'rejection'),
    RESUBMIT: Transition(RESUBMIT, (STATUS_REJECTED,), STATUS_PENDING,
                         ROLE_USER, True, False, None),
    REQUEST_COMPLETION: Transition(REQUEST_COMPLETION,
                                   (STATUS_PENDING, STATUS_ONGOING, STATUS_COMPLETION_REQUESTED),
                                   STATUS_COMPLETION_REQUESTED, ROLE_USER, False, False, None),
    APPROVE_COMPLETION: Transition(APPROVE_COMPLETION, (STATUS_COMPLETION_REQUESTED,), STATUS_COMPLETED,
                                   ROLE_SUPERADMIN, False, False, 'approval'),
    REJECT_COMPLETION: Transition(REJECT_COMPLETION, (STATUS_COMPLETION_REQUESTED,), STATUS_ONGOING,
                                  ROLE_SUPERADMIN, False, True, 'rejection'),
}

_LABELS = {
    APPROVE: 'approve',
    REJECT: 'reject',
    RESUBMIT: 'resubmit',
    REQUEST_COMPLETION: 'request completion of',
    APPROVE_COMPLETION: 'approve completion of',
    REJECT_COMPLETION: 'reject completion of',
}

_NOTIFICATION_TITLES = {
    APPROVE: 'Work Order Approved',
    REJECT: 'Work Order Rejected',
    APPROVE_COMPLETION: 'Work Order Completion Approved',
    REJECT_COMPLETION: 'Work Order Completion Rejected',
}


def allowed_events(order, actor):
    """ 当前用户对该工单可以执行的操作 (供前端决定显示哪些按钮) """
    events = []
    for transition in TRANSITIONS.values():
        if order.status not in transition.sources:
            continue
        if not actor.has_role_at_least(transition.min_role):
            continue
        if transition.requester_only and order.requested_by_id != actor.id:
            continue
        events.append(transition.event)
    return events


class LifecycleManager:
    """
    工单状态机
    session 由调用方传入 (请求内的 db.session)，不在模块级持有连接
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def apply(self, work_order_id, event, actor, **data):
        transition = TRANSITIONS.get(event)
        if transition is None:
            raise ValidationError(f'Unknown transition: {event}')

        # 1. 取当前记录
        order = self._load(work_order_id)
        current = order.status

        # 2. 当前状态是否允许
        if current not in transition.sources:
            raise InvalidTransition(
                f"Cannot {_LABELS[event]} a work order with status '{current}'")

        # 3. 角色 / 身份
        self._check_guard(transition, order, actor)

        # 4. 参数校验并组装更新字段
        values = self._build_values(transition, order, actor, data)
        values['status'] = transition.target
        values['updated_at'] = datetime.now()

        # 5 + 6. 条件更新与通知同一事务
        try:
            changed = self.session.query(WorkOrder) \
                .filter(WorkOrder.id == order.id, WorkOrder.status == current) \
                .update(values, synchronize_session=False)
            if not changed:
                raise InvalidTransition(
                    'Work order was modified by another request, please reload and try again')
            if transition.notify:
                self._notify(transition, order, actor, values)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        current_app.logger.info('Work order %s: %s -> %s by %s (%s)',
                                order.work_order_no, current, transition.target,
                                actor.username, event)
        return self.session.get(WorkOrder, order.id)

    # ------------------------------------------------------------------

    def _load(self, work_order_id):
        order = self.session.get(WorkOrder, work_order_id)
        if order is None:
            raise NotFound('Work order not found')
        return order

    @staticmethod
    def _check_guard(transition, order, actor):
        if actor is None or not actor.has_role_at_least(transition.min_role):
            raise Forbidden('Forbidden')
        if transition.requester_only and order.requested_by_id != actor.id:
            raise Forbidden(f'Only the work order creator can {_LABELS[transition.event]} it')

    def _build_values(self, transition, order, actor, data):
        now = datetime.now()
        reason = None
        if transition.needs_reason:
            reason = (data.get('reason') or '').strip()
            if not reason:
                raise ValidationError('Rejection reason is required')

        event = transition.event
        if event == APPROVE:
            return {
                'approved_by': actor.id,
                'approved_at': now,
                'rejection_reason': None,
            }
        if event == REJECT:
            return {
                'rejection_reason': reason,
                'approved_by': None,
                'approved_at': None,
            }
        if event == RESUBMIT:
            return {
                'rejection_reason': None,
                'approved_by': None,
                'approved_at': None,
                'work_completed_date': None,
                'completion_requested_by': None,
                'completion_requested_at': None,
                'completion_approved_by': None,
                'completion_approved_at': None,
                'completion_rejection_reason': None,
            }
        if event == REQUEST_COMPLETION:
            completed_date = self._validate_completion_request(order, data.get('work_completed_date'))
            return {
                'work_completed_date': completed_date,
                'completion_requested_by': actor.id,
                'completion_requested_at': now,
            }
        if event == APPROVE_COMPLETION:
            missing = self._actions_missing_end_time(order.id)
            if missing:
                raise ValidationError('Cannot approve completion: some actions are missing end time.',
                                      payload={'missing_end_times': missing})
            return {
                'completion_approved_by': actor.id,
                'completion_approved_at': now,
            }
        # REJECT_COMPLETION
        return {'completion_rejection_reason': reason}

    def _validate_completion_request(self, order, raw_date):
        if not raw_date:
            raise ValidationError('Completion date is required')
        completed_date = parse_date(raw_date, 'completion date')

        if completed_date < order.work_order_date:
            raise ValidationError(
                'Completion date cannot be before work order date '
                f'({order.work_order_date.strftime("%d/%m/%Y")})')

        latest_action = self.session.query(func.max(Action.action_date)) \
            .join(Finding, Finding.id == Action.finding_id) \
            .filter(Finding.work_order_id == order.id).scalar()
        if latest_action and completed_date < latest_action:
            raise ValidationError(
                'Completion date cannot be before the last action date '
                f'({latest_action.strftime("%d/%m/%Y")})')

        incomplete = self._actions_of(order.id).filter(Action.is_completed.is_(False)).all()
        if incomplete:
            raise ValidationError(
                'All actions must be completed before requesting completion',
                payload={'incomplete_actions': [{'id': a.id, 'description': a.description}
                                                for a in incomplete]})

        missing = self._actions_missing_end_time(order.id)
        if missing:
            raise ValidationError('All action end times must be filled before requesting completion',
                                  payload={'missing_end_times': missing})
        return completed_date

    def _actions_of(self, work_order_id):
        return self.session.query(Action) \
            .join(Finding, Finding.id == Action.finding_id) \
            .filter(Finding.work_order_id == work_order_id)

    def _actions_missing_end_time(self, work_order_id):
        rows = self._actions_of(work_order_id).filter(Action.end_time.is_(None)) \
            .order_by(Action.action_date.desc()).all()
        return [{'action_id': a.id, 'action_date': a.action_date.isoformat()} for a in rows]

    def _notify(self, transition, order, actor, values):
        if not order.requested_by_id:
            return
        event = transition.event
        subject = f'work order {order.work_order_no} for equipment {order.equipment_number}'
        if event == APPROVE:
            message = f'Your {subject} has been approved by {actor.username}.'
        elif event == REJECT:
            message = (f'Your {subject} has been rejected by {actor.username}. '
                       f'Reason: {values["rejection_reason"]}.')
        elif event == APPROVE_COMPLETION:
            message = f'Your completion request for {subject} has been approved by {actor.username}.'
        else:
            message = (f'Your completion request for {subject} has been rejected by {actor.username}. '
                       f'Reason: {values["completion_rejection_reason"]}.')
        NotificationService.build(order.requested_by_id, _NOTIFICATION_TITLES[event], message,
                                  transition.notify, work_order_id=order.id, session=self.session)
