from datetime import date, datetime

from app.errors import ValidationError

DATE_FORMAT = '%Y-%m-%d'


def parse_date(value, field):
    """Parse a YYYY-MM-DD string (or pass through a date)"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not value:
        raise ValidationError(f'{field} is required')
    try:
        return datetime.strptime(str(value), DATE_FORMAT).date()
    except ValueError:
        raise ValidationError(f'{field} must be a date in YYYY-MM-DD format')


def today():
    return date.today()
