# app/db/base.py
from sqlmodel import SQLModel, create_engine, Session
from app.core.config import settings
import os

DB_URL = settings.DATABASE_URL
connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

if DB_URL.startswith("sqlite:///./"):
    # Le fichier SQLite local vit sous data/, qui peut ne pas encore exister
    os.makedirs(os.path.dirname(DB_URL.replace("sqlite:///", "", 1)), exist_ok=True)

engine = create_engine(DB_URL, echo=False, connect_args=connect_args)

def get_session():
    with Session(engine) as session:
        yield session

def init_db(bind=None):
    import app.db.models  # Important : importe tous les modèles
    SQLModel.metadata.create_all(bind or engine)
