from pydantic_settings import BaseSettings
from typing import List, Any
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


def parse_extensions(v: Any) -> List[str]:
    """Parse allowed extensions from string or list"""
    if isinstance(v, list):
        return [ext.lower().lstrip('.') for ext in v]
    if isinstance(v, str):
        if v.startswith('['):
            try:
                return [ext.lower().lstrip('.') for ext in json.loads(v)]
            except json.JSONDecodeError:
                pass
        return [ext.strip().lower().lstrip('.') for ext in v.split(',') if ext.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "SchoolHub LMS"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str = "CHANGE_ME"
    API_PREFIX: str = "/api"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5000

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./schoolhub.db"
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str = "CHANGE_ME"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080  # 7 days
    BCRYPT_ROUNDS: int = 12  # 4 for tests (fast), 12 for prod (secure)

    # Numeric login ids handed out to users
    USER_NUMBER_MIN: int = 1000
    USER_NUMBER_MAX: int = 999999

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_cors_origins(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 120
    REDIS_URL: str = ""  # Empty means in-memory rate limit storage

    # ==========================================
    # File Upload
    # ==========================================
    UPLOAD_PATH: str = "uploads"
    MAX_UPLOAD_SIZE: int = 10485760  # 10MB
    MAX_REQUEST_SIZE: int = 12582912  # 12MB, multipart overhead included
    ALLOWED_EXTENSIONS_STR: str = "pdf,doc,docx,png,jpg,jpeg"
    MAX_LOGO_SIZE: int = 5242880  # 5MB
    LOGO_EXTENSIONS_STR: str = "png,jpg,jpeg,gif,webp"

    @property
    def ALLOWED_EXTENSIONS(self) -> List[str]:
        """Parse allowed extensions from comma-separated string"""
        return parse_extensions(self.ALLOWED_EXTENSIONS_STR)

    @property
    def LOGO_EXTENSIONS(self) -> List[str]:
        return parse_extensions(self.LOGO_EXTENSIONS_STR)

    @property
    def UPLOAD_DIR(self) -> Path:
        return Path(self.UPLOAD_PATH)

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    # ==========================================
    # Background Jobs
    # ==========================================
    SCHEDULER_ENABLED: bool = True
    PAYMENT_RESET_INTERVAL_SECONDS: int = 3600  # hourly check, applies once per month
    NOTIFICATION_DISPATCH_INTERVAL_SECONDS: int = 60
    SESSION_CHECK_INTERVAL_SECONDS: int = 60

    # ==========================================
    # Pagination (every paginated list)
    # ==========================================
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


settings = Settings()
