# app/core/config.py
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache
from typing import List, Optional, Union

class Settings(BaseSettings):
    # —–– Base de données
    DATABASE_URL: str = Field("sqlite:///./data/app.db", env="DATABASE_URL")

    # —–– Authentification
    JWT_SECRET_KEY: str = Field("change-me", env="JWT_SECRET_KEY")
    JWT_ALGORITHM: str = Field("HS256", env="JWT_ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    # —–– CORS
    CORS_ORIGINS: Union[str, List[str]] = Field(default="*", env="CORS_ORIGINS")

    # —–– Fuseau horaire
    TIME_ZONE: str = Field("Asia/Dhaka", env="TIME_ZONE")

    # —–– Sauvegardes
    BACKUP_DIR: str = Field("backups", env="BACKUP_DIR")
    BACKUP_HOUR: int = Field(6, env="BACKUP_HOUR")
    BACKUP_MINUTE: int = Field(0, env="BACKUP_MINUTE")
    BACKUP_TIMEZONE: Optional[str] = Field(None, env="BACKUP_TIMEZONE")  # défaut: TIME_ZONE
    BACKUP_RETENTION_DAYS: int = Field(30, env="BACKUP_RETENTION_DAYS")
    BACKUP_SCHEDULER_ENABLED: bool = Field(True, env="BACKUP_SCHEDULER_ENABLED")
    BACKUP_RESTART_DELAY_SECONDS: float = Field(1.0, env="BACKUP_RESTART_DELAY_SECONDS")

    # —–– SMTP (envoi des sauvegardes)
    SMTP_HOST: Optional[str] = Field(None, env="SMTP_HOST")
    SMTP_PORT: int = Field(465, env="SMTP_PORT")
    SMTP_USE_SSL: bool = Field(True, env="SMTP_USE_SSL")
    SMTP_USE_TLS: bool = Field(False, env="SMTP_USE_TLS")
    SMTP_USERNAME: Optional[str] = Field(None, env="SMTP_USERNAME")
    SMTP_PASSWORD: Optional[str] = Field(None, env="SMTP_PASSWORD")
    SMTP_TIMEOUT_SECONDS: float = Field(30.0, env="SMTP_TIMEOUT_SECONDS")
    BACKUP_EMAIL_FROM: Optional[str] = Field(None, env="BACKUP_EMAIL_FROM")
    BACKUP_EMAIL_TO: Union[str, List[str]] = Field(default="", env="BACKUP_EMAIL_TO")

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"

    def cors_list(self) -> List[str]:
        return _split_list(self.CORS_ORIGINS)

    def backup_recipients(self) -> List[str]:
        return _split_list(self.BACKUP_EMAIL_TO)

    def backup_timezone(self) -> str:
        return self.BACKUP_TIMEZONE or self.TIME_ZONE


def _split_list(value: Union[str, List[str]]) -> List[str]:
    if isinstance(value, list):
        return value
    return [item.strip() for item in str(value).split(",") if item.strip()]


@lru_cache
def get_settings():
    return Settings()

def reload_settings():
    """Vide le cache et relit l'environnement et le fichier .env."""
    get_settings.cache_clear()
    return get_settings()

settings = get_settings()
