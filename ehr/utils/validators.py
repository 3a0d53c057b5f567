"""
Input parsing helpers shared by routes and services.
"""
import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from flask import request

from ehr.constants import DocumentType
from ehr.errors import ValidationError
from ehr.models.base import utcnow

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DNI_RE = re.compile(r"^\d{8}$")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ValidationError('Missing required fields', fields=missing)


def is_valid_email(value):
    return bool(value) and bool(EMAIL_RE.match(value))


def validate_document(document_type, document_number):
    if document_type not in DocumentType.ALL:
        raise ValidationError('Invalid document type')
    if document_type == DocumentType.DNI and not DNI_RE.match(str(document_number or '')):
        raise ValidationError('DNI must have exactly 8 digits')


def parse_datetime(value, field='date_time'):
    """
    Parse an ISO-8601 string into a naive UTC datetime.

    Offsets (including a trailing 'Z') are converted to UTC; naive input is
    taken as UTC already.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        if not value or not isinstance(value, str):
            raise ValidationError(f'Invalid {field}')
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f'Invalid {field}, expected ISO 8601')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value, field='date'):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f'Invalid {field}')
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError(f'Invalid {field}, expected YYYY-MM-DD')


def parse_decimal(value, field):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid {field}')
    if not amount.is_finite():
        raise ValidationError(f'Invalid {field}')
    if amount < 0:
        raise ValidationError(f'{field} must not be negative')
    return amount


def parse_int(value, field, minimum=None, maximum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}')
    if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
        raise ValidationError(f'{field} must be between {minimum} and {maximum}')
    return number


def ensure_future(moment, message='Appointment date cannot be in the past'):
    if moment < utcnow():
        raise ValidationError(message)


def get_pagination(args):
    """(page, per_page) from query args"""
    try:
        page = max(int(args.get('page', 1)), 1)
        per_page = int(args.get('limit', DEFAULT_PAGE_SIZE))
    except (TypeError, ValueError):
        raise ValidationError('Invalid pagination parameters')
    return page, min(max(per_page, 1), MAX_PAGE_SIZE)


def pagination_dict(pagination):
    return {
        'page': pagination.page,
        'per_page': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    }


def json_body():
    """Request JSON object or a 400"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be JSON')
    return data


def optional_json_body():
    """Request JSON object, {} when there is no body, or a 400 for any other JSON"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data
