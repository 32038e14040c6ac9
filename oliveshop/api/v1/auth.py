from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from oliveshop.api.deps import get_current_user
from oliveshop.core.config import settings
from oliveshop.core.exceptions import InvalidCredentials
from oliveshop.core.rate_limiter import limiter
from oliveshop.core.security import create_access_token, verify_password
from oliveshop.db.session import get_db
from oliveshop.models.user import User
from oliveshop.schemas.user import UserLogin, UserResponse
from oliveshop.utils.response import success

router = APIRouter()


def _should_use_secure_cookies(request: Request) -> bool:
    return settings.ENVIRONMENT == "production" or request.url.scheme == "https"


@router.post("/login")
@limiter.limit("10/minute")
def login(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise InvalidCredentials()

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    access_token = create_access_token(user.id, user.role.value)

    response = JSONResponse(
        content=success(
            data={
                "user": {
                    "id": user.id,
                    "email": user.email,
                    "role": user.role.value,
                },
                "access_token": access_token,
                "token_type": "bearer",
            },
            message="Login successful",
        )
    )
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=_should_use_secure_cookies(request),
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    return response


@router.post("/logout")
def logout(request: Request):
    response = JSONResponse(content=success(message="Logout successful"))
    response.delete_cookie(
        key="access_token",
        path="/",
        samesite="lax",
        secure=_should_use_secure_cookies(request),
    )
    return response


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success(data=UserResponse.model_validate(current_user), message="Current user")
