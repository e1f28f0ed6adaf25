from datetime import datetime


def isoformat(value):
    return value.isoformat() if isinstance(value, datetime) else value
