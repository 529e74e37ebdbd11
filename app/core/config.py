import os
import re

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}
_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str, default_seconds: int) -> int:
    """Converte "1h", "7d", "30m", "45s" ou "3600" para segundos."""
    match = _DURATION_RE.match(value or "")
    if not match:
        return default_seconds
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit.lower()]


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./wa_gateway.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

API_PREFIX = "/api/v1"

# Auth (JWT)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "") or JWT_SECRET_KEY
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_IN = parse_duration(os.getenv("JWT_EXPIRES_IN", "1h"), 3600)
JWT_REFRESH_EXPIRES_IN = parse_duration(os.getenv("JWT_REFRESH_EXPIRES_IN", "7d"), 7 * 86400)
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# WAHA
_waha_url_env = os.getenv("WAHA_API_URL", "").strip()
WAHA_API_URL = (_waha_url_env or "http://localhost:3001").rstrip("/")
WAHA_API_KEY = os.getenv("WAHA_API_KEY", "").strip()
WAHA_TIMEOUT_SECONDS = float(os.getenv("WAHA_TIMEOUT_SECONDS", "20"))
WAHA_WEBHOOK_SECRET = os.getenv("WAHA_WEBHOOK_SECRET", "").strip()
WHATSAPP_PROVIDER = (
    os.getenv("WHATSAPP_PROVIDER", "").strip().lower()
    or ("mock" if IS_DEV and not _waha_url_env else "waha")
)
APP_URL = os.getenv("APP_URL", "http://localhost:3000").rstrip("/")
QR_CODE_TTL_SECONDS = int(os.getenv("QR_CODE_TTL_SECONDS", "300"))

# Throttle
RATE_LIMIT_REQUESTS = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# Registro
DEFAULT_TENANT_NAME = os.getenv("DEFAULT_TENANT_NAME", "Default Tenant")
DEFAULT_GROUP_NAME = os.getenv("DEFAULT_GROUP_NAME", "Default User Group")
DEFAULT_MEMBER_GROUP_NAME = os.getenv("DEFAULT_MEMBER_GROUP_NAME", "Members")

BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "").strip().lower()
BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "").strip()
BOOTSTRAP_ALLOW = _flag("BOOTSTRAP_ALLOW")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
