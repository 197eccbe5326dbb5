"""
Security utilities and authentication
"""

import secrets
import time

from fastapi import HTTPException, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

# Simple in-memory rate limiter
rate_limiter: dict[str, list[float]] = {}

security = HTTPBearer()

def is_admin_token(token: str | None) -> bool:
    return bool(token) and secrets.compare_digest(token, settings.ADMIN_TOKEN)

def verify_admin_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify admin authentication token"""
    if not is_admin_token(credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token"
        )
    return credentials.credentials

def rate_limit_check(client_ip: str, limit: int = None) -> bool:
    """Simple rate limiting by IP address"""
    if limit is None:
        limit = settings.RATE_LIMIT_PER_MINUTE

    current_time = time.time()
    minute_ago = current_time - 60

    # Drop clients with no request inside the window
    for ip in [ip for ip, times in rate_limiter.items() if not times or times[-1] <= minute_ago]:
        del rate_limiter[ip]

    recent = [
        req_time for req_time in rate_limiter.get(client_ip, ())
        if req_time > minute_ago
    ]

    if len(recent) >= limit:
        if recent:
            rate_limiter[client_ip] = recent
        return False

    rate_limiter[client_ip] = recent + [current_time]
    return True

def get_client_ip(request) -> str:
    """Extract client IP from request"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"
