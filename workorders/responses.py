# workorders/responses.py
from flask import jsonify, request


def ok(data=None, message=None, status=200):
    """ 统一响应格式: {"success": true, "data": ..., "message": ...} """
    body = {'success': True, 'data': data}
    if message:
        body['message'] = message
    return jsonify(body), status


def json_body():
    return request.get_json(silent=True) or {}
