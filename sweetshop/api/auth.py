from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from sweetshop.database import get_db
from sweetshop.schemas.auth import AuthResponse, LoginRequest, RegisterRequest, UserResponse
from sweetshop.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
    description="Create a regular (non-admin) account and return an access token."
)
def register(
    data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new user.

    - **email**: Unique email address (required)
    - **password**: At least 6 characters (required)
    - **name**: Display name (required)
    """
    user, token = AuthService(db).register(data)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Log in",
    description="Exchange email and password for an access token."
)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db)
):
    user, token = AuthService(db).login(data)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)
