from datetime import timedelta

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from mainevents.core.config import AUTH_COOKIE_NAME, JWT_EXPIRES_DAYS, is_production
from mainevents.core.security import create_access_token
from mainevents.database.db import get_db
from mainevents.models.users import User
from mainevents.routes.deps import get_current_user
from mainevents.schemas.auth import AuthOut, LoginRequest, RegisterRequest, UserOut
from mainevents.schemas.events import MessageOut
from mainevents.services.auth import authenticate_user, register_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=int(timedelta(days=JWT_EXPIRES_DAYS).total_seconds()),
        httponly=True,
        samesite="strict",
        secure=is_production(),
    )


@router.post("/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    user = register_user(db, payload)
    token = create_access_token({"id": user.id})
    _set_auth_cookie(response, token)
    return {"message": "User registered successfully", "user": user, "token": token}


@router.post("/login", response_model=AuthOut)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    token = create_access_token({"id": user.id})
    _set_auth_cookie(response, token)
    return {"message": "Login successful", "user": user, "token": token}


@router.post("/logout", response_model=MessageOut)
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE_NAME, httponly=True, samesite="strict", secure=is_production())
    return {"message": "Logged out successfully"}


@router.get("/profile", response_model=UserOut)
def profile(user: User = Depends(get_current_user)):
    return user
