from pydantic_settings import BaseSettings
from typing import List, Any, Optional
import json
from pathlib import Path


def parse_csv_list(v: Any) -> List[str]:
    """Parse a list setting from a JSON array string or a comma-separated string"""
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
        return [item.strip() for item in v.split(',') if item.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "JPA Data Confirmation"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str
    API_VERSION: str = "v1"

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 3001

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./confirmation_data.db"
    DB_ECHO: bool = False

    # ==========================================
    # Authentication
    # ==========================================
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # one working day
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12  # 4 for tests, 12 for prod

    ADMIN_EMAILS_STR: str = ""  # registrations with these emails get the admin role

    @property
    def ADMIN_EMAILS(self) -> List[str]:
        return [e.lower() for e in parse_csv_list(self.ADMIN_EMAILS_STR)]

    # ==========================================
    # Email
    # ==========================================
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_START_TLS: bool = True
    SMTP_TIMEOUT: int = 30
    EMAIL_FROM: str = "noreply@jpa.gov.my"
    EMAIL_FROM_NAME: str = "JPA Data Confirmation"

    # ==========================================
    # Submission notifications
    # ==========================================
    NOTIFICATION_RECIPIENTS_STR: str = ""
    NOTIFICATION_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_MAX_RETRIES: int = 3
    NOTIFICATION_RETRY_BASE_DELAY: float = 2.0  # seconds
    NOTIFICATION_RETRY_MAX_DELAY: float = 30.0  # seconds
    NOTIFICATION_STATUS_MAX_RECORDS: int = 1000

    @property
    def NOTIFICATION_RECIPIENTS(self) -> List[str]:
        """Parse notification recipients from comma-separated string"""
        return parse_csv_list(self.NOTIFICATION_RECIPIENTS_STR)

    # ==========================================
    # Frontend
    # ==========================================
    FRONTEND_URL: str = "http://localhost:3000"

    # ==========================================
    # CORS (stored as comma-separated string, parsed to list)
    # ==========================================
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://127.0.0.1:3000"

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return parse_csv_list(self.CORS_ORIGINS_STR)

    # ==========================================
    # Rate Limiting
    # ==========================================
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    # ==========================================
    # Catalog
    # ==========================================
    CATALOG_PATH: Optional[str] = None  # None means the bundled systems.json

    # ==========================================
    # File Upload / Export
    # ==========================================
    UPLOAD_PATH: str = "uploads"
    EXPORT_PATH: str = "exports"
    MAX_UPLOAD_SIZE: int = 10485760  # 10MB
    ALLOWED_EXTENSIONS_STR: str = "pdf,doc,docx,xlsx,xls"

    @property
    def ALLOWED_EXTENSIONS(self) -> List[str]:
        """Parse allowed extensions from comma-separated string"""
        return [ext.lower().lstrip('.') for ext in parse_csv_list(self.ALLOWED_EXTENSIONS_STR)]

    # ==========================================
    # Maintenance
    # ==========================================
    CLEANUP_DEFAULT_PATTERN: str = "%test%"

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Initialize paths after pydantic validation
        self._package_dir = Path(__file__).resolve().parent.parent
        self._upload_dir = Path(self.UPLOAD_PATH)
        self._export_dir = Path(self.EXPORT_PATH)

        self._upload_dir.mkdir(exist_ok=True, parents=True)
        self._export_dir.mkdir(exist_ok=True, parents=True)
        if self.LOG_FILE:
            Path(self.LOG_FILE).parent.mkdir(exist_ok=True, parents=True)

    @property
    def UPLOAD_DIR(self) -> Path:
        return self._upload_dir

    @property
    def EXPORT_DIR(self) -> Path:
        return self._export_dir

    @property
    def CATALOG_FILE(self) -> Path:
        """Catalog JSON location - bundled file unless CATALOG_PATH is set"""
        if self.CATALOG_PATH:
            return Path(self.CATALOG_PATH)
        return self._package_dir / "data" / "systems.json"

    @property
    def SQLITE_FILE(self) -> Optional[Path]:
        """Filesystem path of the SQLite database, None for non-file databases"""
        if "sqlite" not in self.DATABASE_URL:
            return None
        _, _, path = self.DATABASE_URL.partition(":///")
        if not path or path.startswith(":memory:"):
            return None
        return Path(path)

    def is_dev_mode(self) -> bool:
        """Check if running in development mode"""
        return self.ENVIRONMENT == "development" or self.DEBUG


# Create settings instance
settings = Settings()
