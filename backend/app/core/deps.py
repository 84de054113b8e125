# app/core/deps.py
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session
from app.core.security import user_id_from_token
from app.db.base import get_session
from app.db.models import User
from app.services.backup.scheduler import BackupScheduler

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def get_db():
    yield from get_session()

async def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user_id = user_id_from_token(token)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail="User not found")
    return user

def require_role(role: str):
    """Dépendance : 403 si l'utilisateur courant n'a pas le rôle demandé."""
    def wrapper(user: User = Depends(get_current_user)):
        if user.role != role:
            raise HTTPException(status_code=403, detail="Access denied")
        return user
    return wrapper

def get_backup_scheduler(request: Request) -> BackupScheduler:
    # Instance unique créée dans le lifespan de main.py
    scheduler = getattr(request.app.state, "backup_scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Backup scheduler not initialised")
    return scheduler
