"""
Request-scoped middleware: request ids for log correlation and per-user
rate limiting.
"""

from middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware, get_request_id
from middleware.rate_limiter import limiter, get_user_id

__all__ = ["REQUEST_ID_HEADER", "RequestIDMiddleware", "get_request_id", "limiter", "get_user_id"]
