from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from jose import jwt, JWTError
from core.config import settings


def get_user_id(request: Request):
    """
    Rate-limit key: the user id from a valid bearer token, else the client IP.
    """
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.removeprefix("Bearer ")
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
            user_id = payload.get("id")
            if user_id:
                return f"user:{user_id}"
        except JWTError:
            pass

    return get_remote_address(request)


limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
