# app/api/auth.py
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session
from app.schemas.auth import CurrentUser, LoginRequest, Token
from app.core.security import authenticate_user, create_access_token
from app.core.deps import get_db, get_current_user
from app.db.models import User

router = APIRouter()


@router.post("/login", response_model=Token)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, data.email, data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=create_access_token(user.id))


@router.get("/me", response_model=CurrentUser)
def me(user: User = Depends(get_current_user)):
    return CurrentUser(id=user.id, email=user.email, name=user.name, role=getattr(user.role, "value", user.role))
