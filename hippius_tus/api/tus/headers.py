from datetime import datetime
from datetime import timezone


def http_date(value: datetime) -> str:
    """RFC 7231 IMF-fixdate, e.g. ``Sun, 06 Nov 1994 08:49:37 GMT``."""
    return value.astimezone(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S GMT")
