"""
Timezone utilities for restaurant operations.
Default: Asia/Bangkok, overridable via TASK_ENGINE['DEFAULT_TIMEZONE'].
"""
import zoneinfo
from datetime import datetime, timezone as dt_timezone
from django.conf import settings
from django.utils import timezone as dj_timezone


def default_timezone_name():
    return settings.TASK_ENGINE.get('DEFAULT_TIMEZONE', 'Asia/Bangkok')


def is_valid_timezone(tz_str):
    if not tz_str:
        return False
    try:
        zoneinfo.ZoneInfo(str(tz_str))
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        return False
    return True


def get_restaurant_timezone(restaurant):
    """Get timezone string for a restaurant, falling back to the engine default."""
    if restaurant and getattr(restaurant, "timezone", None):
        tz_str = str(restaurant.timezone).strip()
        if is_valid_timezone(tz_str):
            return tz_str
    return default_timezone_name()


def ensure_aware(dt):
    """Treat naive datetimes as UTC."""
    if dt is None:
        return None
    if dj_timezone.is_naive(dt):
        return dj_timezone.make_aware(dt, dt_timezone.utc)
    return dt


def to_local(dt, tz_str):
    """Convert a datetime to an aware datetime in the given timezone."""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(zoneinfo.ZoneInfo(tz_str))


def local_date(dt, tz_str):
    """Calendar date of an instant as seen in the given timezone."""
    local = to_local(dt, tz_str)
    return local.date() if local else None


def to_utc(dt):
    """Normalise an aware (or naive UTC) datetime to UTC."""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(dt_timezone.utc)


def parse_iso_datetime(value):
    """Parse an ISO-8601 string (accepting a trailing Z) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))
