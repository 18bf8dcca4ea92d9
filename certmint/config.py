"""certmint configuration constants.

Environment-based configuration. Every setting can be overridden with a
``CERTMINT_*`` environment variable; defaults are suitable for local
development with the in-process mock services.
"""
import logging
import os
import secrets
from pathlib import Path

log = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


# =============================================================================
# PERSISTENCE CONFIGURATION
# =============================================================================

def _get_data_dir() -> Path:
    """Determine data directory based on environment.

    Priority:
    1. CERTMINT_DATA_DIR env var (explicit override)
    2. /data/certmint if it exists (Docker volume mount)
    3. ~/.certmint (local development)
    4. /tmp/certmint (container fallback when home unavailable)
    """
    env_path = os.getenv("CERTMINT_DATA_DIR")
    if env_path:
        return Path(env_path)

    docker_path = Path("/data/certmint")
    if docker_path.exists():
        return docker_path

    try:
        home_path = Path.home() / ".certmint"
        home_path.mkdir(parents=True, exist_ok=True)
        return home_path
    except (OSError, PermissionError, RuntimeError):
        return Path("/tmp/certmint")


DATA_DIR: Path = _get_data_dir()


def _get_database_url() -> str:
    """Get database URL from environment.

    Priority:
    1. CERTMINT_DATABASE_URL - explicit full connection string
    2. CERTMINT_POSTGRES_* - construct PostgreSQL URL from components
    3. SQLite fallback for local development
    """
    if url := os.getenv("CERTMINT_DATABASE_URL"):
        return url

    host = os.getenv("CERTMINT_POSTGRES_HOST")
    if host:
        user = os.getenv("CERTMINT_POSTGRES_USER", "certmint")
        password = os.getenv("CERTMINT_POSTGRES_PASSWORD", "")
        db = os.getenv("CERTMINT_POSTGRES_DB", "certmint")
        # sslmode=require enforces encrypted connection to managed PostgreSQL
        return f"postgresql+psycopg://{user}:{password}@{host}/{db}?sslmode=require"

    return f"sqlite:///{DATA_DIR}/certmint.db"


DATABASE_URL: str = _get_database_url()


# =============================================================================
# SESSION CONFIGURATION
# =============================================================================

def _get_jwt_secret() -> str:
    secret = os.getenv("CERTMINT_JWT_SECRET")
    if secret:
        return secret
    log.warning(
        "CERTMINT_JWT_SECRET not set: using a random per-process secret, "
        "session tokens will not survive a restart"
    )
    return secrets.token_urlsafe(32)


JWT_SECRET: str = _get_jwt_secret()
JWT_ALGORITHM: str = "HS256"
SESSION_TTL_SECONDS: int = int(os.getenv("CERTMINT_SESSION_TTL", str(7 * 24 * 3600)))  # 7 days

# Login rate limiting (failed signature attempts per client address)
LOGIN_RATE_LIMIT_MAX_ATTEMPTS: int = int(os.getenv("CERTMINT_LOGIN_RATE_LIMIT_MAX", "5"))
LOGIN_RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("CERTMINT_LOGIN_RATE_LIMIT_WINDOW", "900"))  # 15 min
LOGIN_RATE_LIMIT_CLEANUP_INTERVAL: int = int(os.getenv("CERTMINT_RATE_LIMIT_CLEANUP_INTERVAL", "300"))  # 5 min

AUTH_EXEMPT_PATHS: set[str] = {"/healthz", "/version", "/api/auth/login"}


# =============================================================================
# EXTERNAL SERVICES
# =============================================================================

# When true, deterministic in-process fakes replace the oracle, ledger
# uploader and minting service.
MOCK_SERVICES_ENABLED: bool = _env_bool("CERTMINT_MOCK_SERVICES", "true")

# Verification oracle
ORACLE_URL: str = os.getenv(
    "CERTMINT_ORACLE_URL",
    "https://certificate-verification-worker-v3.spacewear-work.workers.dev",
)
ORACLE_API_KEY: str = os.getenv("CERTMINT_ORACLE_API_KEY", "")
ORACLE_TIMEOUT_SECONDS: float = float(os.getenv("CERTMINT_ORACLE_TIMEOUT", "10.0"))

# Ledger anchoring (bundler-style upload gateway)
LEDGER_URL: str = os.getenv("CERTMINT_LEDGER_URL", "https://node1.bundlr.network")
LEDGER_API_KEY: str = os.getenv("CERTMINT_LEDGER_API_KEY", "")
LEDGER_GATEWAY_URL: str = os.getenv("CERTMINT_LEDGER_GATEWAY", "https://arweave.net")
LEDGER_TIMEOUT_SECONDS: float = float(os.getenv("CERTMINT_LEDGER_TIMEOUT", "30.0"))

# Token minting service
MINT_URL: str = os.getenv("CERTMINT_MINT_URL", "http://localhost:8787")
MINT_API_KEY: str = os.getenv("CERTMINT_MINT_API_KEY", "")
MINT_TIMEOUT_SECONDS: float = float(os.getenv("CERTMINT_MINT_TIMEOUT", "30.0"))


# =============================================================================
# DOCUMENT STORAGE
# =============================================================================

# "azure" for Azure Blob Storage, "memory" for the in-process store
STORAGE_BACKEND: str = os.getenv("CERTMINT_STORAGE_BACKEND", "memory").lower()
AZURE_STORAGE_CONNECTION_STRING: str | None = os.getenv("CERTMINT_AZURE_STORAGE_CONNECTION_STRING")
STORAGE_CONTAINER: str = os.getenv("CERTMINT_STORAGE_CONTAINER", "certificates")
PRESIGN_TTL_SECONDS: int = int(os.getenv("CERTMINT_PRESIGN_TTL", "3600"))


# =============================================================================
# OPERATIONAL
# =============================================================================

VERIFICATION_BASE_URL: str = os.getenv(
    "CERTMINT_VERIFICATION_BASE_URL", "https://certifly.in/verify"
).rstrip("/")
SERVICE_PORT: int = int(os.getenv("CERTMINT_PORT", "8000"))
