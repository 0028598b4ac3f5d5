# workorders/errors.py
"""
业务异常
服务层只负责抛出，由 create_app 中注册的 errorhandler 统一转换为 JSON 响应。
"""


class WorkOrderError(Exception):
    status_code = 500

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        body = {'success': False, 'error': self.message}
        if self.payload is not None:
            body['data'] = self.payload
        return body


class NotFound(WorkOrderError):
    """ 工单或关联记录不存在 """
    status_code = 404


class InvalidTransition(WorkOrderError):
    """ 当前状态不允许该操作 (包括并发更新时抢占失败) """
    status_code = 409


class Forbidden(WorkOrderError):
    """ 角色或身份不满足要求 """
    status_code = 403


class ValidationError(WorkOrderError):
    """ 缺少必填参数或参数格式错误 """
    status_code = 400


class Unauthorized(WorkOrderError):
    """ 用户名或密码错误、账号锁定 """
    status_code = 401
