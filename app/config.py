from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Get the backend directory (parent of app directory)
BACKEND_DIR = Path(__file__).parent.parent
ENV_FILE = BACKEND_DIR / ".env"

class Settings(BaseSettings):
    # Server settings (non-confidential, can have defaults)
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Timezone used for loan timestamps (pytz zone name)
    app_timezone: str = "UTC"

    # Full SQLAlchemy URL; when set it takes precedence over the db_* fields
    database_url: Optional[str] = None

    # Database settings - confidential values from .env
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None

    # JWT settings - confidential values from .env
    jwt_secret_key: str  # Required from .env (confidential - no default)
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 1440

    # Database SSL settings
    db_ssl_mode: str = "prefer"  # Options: disable, allow, prefer, require, verify-ca, verify-full
    db_ssl_cert: Optional[str] = None  # Path to client certificate
    db_ssl_key: Optional[str] = None  # Path to client key
    db_ssl_root_cert: Optional[str] = None  # Path to root certificate

    class Config:
        env_file = str(ENV_FILE) if ENV_FILE.exists() else ".env"
        case_sensitive = False

settings = Settings()
