import os
from datetime import datetime
import pytz

DEFAULT_TIMEZONE = 'Asia/Jerusalem'


def get_app_timezone():
    """Timezone the business operates in (APP_TIMEZONE, defaults to Israel time)"""
    try:
        return pytz.timezone(os.environ.get('APP_TIMEZONE', DEFAULT_TIMEZONE))
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(DEFAULT_TIMEZONE)


def get_local_time():
    return datetime.now(get_app_timezone())


def get_local_time_naive():
    """Get current local time as naive datetime for database storage"""
    return get_local_time().replace(tzinfo=None)

