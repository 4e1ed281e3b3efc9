from core.database import SessionLocal
from typing import Annotated
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from jose import JWTError, jwt
from starlette import status
from core.config import settings
from services.payment_gateway import PaymentGateway
from services.stripe_service import StripeService


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

db_dependency = Annotated[Session, Depends(get_db)]


def get_current_user(token: Annotated[str, Depends(OAuth2PasswordBearer(tokenUrl="auth/token"))]):
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.")

    email: str = payload.get("sub")
    user_id: int = payload.get("id")
    user_role: str = payload.get("role")

    if email is None or user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Could not validate credentials.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail="Invalid token type. Access token required.")

    return {"email": email, "user_id": user_id, "user_role": user_role}


user_dependency = Annotated[dict, Depends(get_current_user)]


def get_admin_user(user: user_dependency):
    if user.get("user_role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN,
                            detail="Admin privileges required.")
    return user


admin_dependency = Annotated[dict, Depends(get_admin_user)]


_gateway: PaymentGateway | None = None


def get_payment_gateway() -> PaymentGateway:
    """
    The process-wide Stripe adapter. Tests override this dependency with an
    in-memory fake.
    """
    global _gateway
    if _gateway is None:
        _gateway = StripeService(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET
        )
    return _gateway


gateway_dependency = Annotated[PaymentGateway, Depends(get_payment_gateway)]
