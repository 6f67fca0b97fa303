"""Authentication routes (session cookie)."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ..audit.service import audit
from ..database.base import get_db
from ..dependencies import get_current_user
from .models import User
from .schemas import LoginRequest, RegisterRequest, UserResponse
from .service import DuplicateUserError, authenticate_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_payload(user: User) -> dict:
    return UserResponse(
        id=str(user.id),
        email=user.email,
        name=user.name or "",
        is_active=bool(user.is_active),
    ).model_dump()


@router.post("/register", status_code=201)
def register(request: Request, payload: RegisterRequest, db: Session = Depends(get_db)):
    try:
        user = register_user(db, payload.email, payload.password, payload.name)
    except DuplicateUserError:
        return JSONResponse({"error": "An account with this email already exists"}, status_code=409)
    request.session["user_id"] = str(user.id)
    audit(db, request, "register", f"email={user.email}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, "user": _user_payload(user)}, status_code=201)


@router.post("/login")
def login(request: Request, payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        audit(db, request, "login_failed", f"email={payload.email}")
        db.commit()
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)
    request.session["user_id"] = str(user.id)
    audit(db, request, "login", f"email={payload.email}", user_id=user.id)
    db.commit()
    return JSONResponse({"ok": True, "user": _user_payload(user)})


@router.post("/logout")
def logout(request: Request, db: Session = Depends(get_db)):
    audit(db, request, "logout")
    db.commit()
    request.session.clear()
    return JSONResponse({"ok": True})


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return JSONResponse(_user_payload(user))
