from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from starlette import status
from utils.deps import db_dependency
from schemas.auth_schemas import Token, CreateUserRequest, UserResponse
from services.auth_service import AuthService
from middleware.rate_limiter import limiter
from utils.logger import get_logger
from utils.responses import success_response

logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/token", response_model=Token)
@limiter.limit("5/minute")
async def login_for_access_token(request: Request, db: db_dependency, form_data: OAuth2PasswordRequestForm = Depends()):
    user = AuthService.authenticate_user(form_data.username, form_data.password, db)

    access_token = AuthService.create_access_token(user.email, user.id, user.role)

    logger.info(
        "User logged in successfully",
        extra={"user_id": user.id, "email": user.email}
    )

    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/", status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
async def create_user(request: Request, body: CreateUserRequest, db: db_dependency):
    user = AuthService.create_user(body, db)

    logger.info(
        "User registered successfully",
        extra={"user_id": user.id, "email": user.email}
    )

    return success_response(
        data={"user": UserResponse.model_validate(user, from_attributes=True).model_dump(by_alias=True)},
        message="Registration successful"
    )
