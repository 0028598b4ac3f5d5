# workorders/utils.py
import re
from datetime import datetime, date, time

from workorders.errors import ValidationError

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^([01]?[0-9]|2[0-3]):[0-5][0-9]$')


def iso_format(value):
    """ date/datetime/time 转 ISO 字符串，None 原样返回 """
    if value is None:
        return None
    if isinstance(value, time):
        return value.strftime('%H:%M')
    return value.isoformat()


def parse_date(value, field='date'):
    """ 严格解析 YYYY-MM-DD """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise ValidationError(f'Invalid {field} format. Expected YYYY-MM-DD format.')
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ValidationError(f'Invalid {field}: {value}')


def parse_time(value, field='time'):
    """ 解析 HH:MM """
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValidationError(f'Invalid {field} format. Use HH:MM format')
    return datetime.strptime(value.strip(), '%H:%M').time()


def parse_datetime(value, field='datetime'):
    """ 解析 ISO 格式时间，兼容 'YYYY-MM-DDTHH:MM' 与 'YYYY-MM-DD HH:MM:SS' """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required')
    try:
        return datetime.fromisoformat(value.strip().replace('Z', ''))
    except ValueError:
        raise ValidationError(f'Invalid {field} format')


def parse_int(value, field, minimum=None, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}')
    if minimum is not None and number < minimum:
        raise ValidationError(f'{field} must be at least {minimum}')
    if maximum is not None and number > maximum:
        raise ValidationError(f'{field} must be at most {maximum}')
    return number


def parse_bool(value, field):
    """ 只接受 JSON 布尔值，"false" 之类的字符串视为格式错误 """
    if not isinstance(value, bool):
        raise ValidationError(f'{field} must be true or false')
    return value


def require_text(data, field, max_length=None, label=None):
    """ 取出必填文本字段并 strip，为空或超长时抛 ValidationError """
    label = label or field.replace('_', ' ').capitalize()
    value = data.get(field)
    if value is None or not str(value).strip():
        raise ValidationError(f'{label} is required')
    value = str(value).strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f'{label} must be less than {max_length} characters')
    return value
