# servicedesk/core/config.py
from typing import List, Union, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    # ==== Інфраструктура ====
    database_url: str = "postgresql+asyncpg://app:app@db:5432/servicedesk"
    redis_url: str = "redis://redis:6379/0"

    # кеш представлень (tickets, ticket:{id}, ...); None → кеш у пам'яті процесу
    cache_url: Optional[str] = None
    cache_ttl_seconds: int = 300

    # ==== Безпека / Auth ====
    jwt_secret: str = "changeme"
    jwt_alg: str = "HS256"

    # базовий час життя токена, хвилини
    jwt_expires_min: int = 60

    # розширена сесія для "Запам'ятати мене" (~30 днів)
    jwt_remember_expires_min: int = 60 * 24 * 30

    # ==== CORS ====
    # CORS_ORIGINS=http://localhost:5173,http://127.0.0.1:5173,...
    cors_origins: Union[str, List[str]] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
        "http://127.0.0.1:8080",
    ]

    # ==== Політика реєстрації ====
    allow_self_signup: bool = True

    # ==== Bootstrap Admin ====
    admin_email: str = "admin@example.com"
    admin_password: str = "ChangeMe123!"
    admin_name: str = "Admin"

    # ==== Інтерфейс (SI / портал) ====
    interface_mode_key: str = "itsm-interface-mode"
    sign_in_path: str = "/auth"
    backoffice_root: str = "/"
    portal_root: str = "/portal"

    # ==== Нотифікації (RQ) ====
    notifications_enabled: bool = True
    notifications_queue: str = "notifications"
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None

    # ==== Логування / Оточення ====
    env: str = "dev"          # dev|staging|prod
    log_level: str = "INFO"   # DEBUG|INFO|WARNING|ERROR

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    parsed = json.loads(s)
                except ValueError:
                    parsed = None
                if isinstance(parsed, list):
                    return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in s.split(",") if i.strip()]
        return v

    # UI-шляхи для guard-а завжди у вигляді "/x" без кінцевого слеша
    @field_validator("sign_in_path", "backoffice_root", "portal_root")
    @classmethod
    def _normalize_ui_path(cls, v: str) -> str:
        return "/" + v.strip().strip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.strip().upper()


settings = Settings()
