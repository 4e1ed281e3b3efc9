from datetime import datetime, timezone, timedelta
from fastapi import HTTPException
from jose import jwt
from sqlalchemy.orm import Session
from starlette import status
from core.config import settings
from models.users import User
from schemas.auth_schemas import CreateUserRequest
from utils.hashing import verify_password, get_password_hash
from utils.logger import get_logger

logger = get_logger(__name__)

class AuthService:

    @staticmethod
    def create_user(request: CreateUserRequest, db: Session) -> User:
        email = request.email.lower().strip()

        existing_user = db.query(User).filter(User.email == email).first()
        if existing_user:
            logger.warning(
                "Registration attempt with existing email",
                extra={"email": email}
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        model = User(
            email=email,
            first_name=request.first_name,
            last_name=request.last_name,
            hashed_password=get_password_hash(request.password),
            phone_number=request.phone_number
        )

        db.add(model)
        db.commit()
        db.refresh(model)
        return model


    @staticmethod
    def authenticate_user(email: str, password: str, db: Session) -> User:
        user = db.query(User).filter(User.email == email.lower().strip()).first()

        if not user or not user.is_active or not verify_password(password, user.hashed_password):
            logger.warning(
                "Login failed - invalid credentials or inactive account",
                extra={"email": email}
            )
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user.")

        logger.debug(
            "User authenticated successfully",
            extra={"user_id": user.id, "email": email}
        )
        return user


    @staticmethod
    def create_access_token(email: str, user_id: int, role: str, expires_delta: timedelta = None) -> str:
        """
        Creates a signed JWT access token.

        Args:
            email: User's email (becomes `sub`)
            user_id: User's ID
            role: User's role, checked by admin-only routes
            expires_delta: Lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": email,
            "id": user_id,
            "role": role,
            "type": "access",
            "exp": datetime.now(timezone.utc) + expires_delta
        }

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


    @staticmethod
    def get_active_user_by_id(db: Session, user_id: int) -> User | None:
        return db.query(User).filter(User.id == user_id, User.is_active == True).one_or_none()
