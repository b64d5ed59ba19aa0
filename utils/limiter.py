from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from utils.config import RATE_LIMIT_ENABLED, RATE_LIMIT_STORAGE_URI


def forwarded_for_ip(request: Request) -> str:
    """Resolve client IP using X-Forwarded-For first, then fallback to socket IP."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = xff.split(",")[0].strip()
        if ip:
            return ip
    return get_remote_address(request)


# Global limiter instance to be shared across the app and routers
limiter = Limiter(
    key_func=forwarded_for_ip,
    enabled=RATE_LIMIT_ENABLED,
    storage_uri=RATE_LIMIT_STORAGE_URI,
)
