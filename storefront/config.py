# storefront/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar, Optional, Set
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./storefront.db"

    # Extra origin allowed by CORS (deployed frontend)
    FRONTEND_URL: Optional[str] = None
    LOG_LEVEL: str = "INFO"

    # Comma-separated emails that receive the admin role on registration
    ADMIN_EMAILS: str = ""

    class Config:
        env_file: ClassVar[str] = str(env_path)

    @property
    def admin_emails(self) -> Set[str]:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

settings = Settings()
