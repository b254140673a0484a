from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_cors_origins(v: Any) -> List[str]:
    """Parse CORS origins from string or list"""
    if isinstance(v, list):
        return v
    if isinstance(v, str):
        # Try JSON parsing first
        if v.startswith('['):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Fall back to comma-separated
        return [origin.strip() for origin in v.split(',') if origin.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "LetterDesk"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False

    # ==========================================
    # Security / JWT
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # ==========================================
    # CORS
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================
    # Rate limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # ==========================================
    # Letters & numbering
    # ==========================================
    LETTER_TYPES_FILE: Optional[str] = None  # Defaults to letterdesk/config/letter_types.yml
    LETTER_NUMBER_MAX_RETRIES: int = 5
    LETTER_NUMBER_TIMEZONE: str = ""  # IANA zone name, empty = server local time
    LETTERS_MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Get CORS origins as list"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    @property
    def BASE_DIR(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def letter_types_path(self) -> Path:
        if self.LETTER_TYPES_FILE:
            return Path(self.LETTER_TYPES_FILE)
        return self.BASE_DIR / "config" / "letter_types.yml"

# Create settings instance
settings = Settings()
