from decouple import config
from dotenv import load_dotenv

load_dotenv()


SQLALCHEMY_DATABASE_URL = config("SQLALCHEMY_DATABASE_URL", default="sqlite:///db.sqlite3")
SQLALCHEMY_POOL_SIZE = config("SQLALCHEMY_POOL_SIZE", cast=int, default=20)
SQLALCHEMY_MAX_OVERFLOW = config("SQLALCHEMY_MAX_OVERFLOW", cast=int, default=50)

UVICORN_HOST = config("UVICORN_HOST", default="0.0.0.0")
UVICORN_PORT = config("UVICORN_PORT", cast=int, default=8000)
UVICORN_UDS = config("UVICORN_UDS", default=None)
UVICORN_SSL_CERTFILE = config("UVICORN_SSL_CERTFILE", default=None)
UVICORN_SSL_KEYFILE = config("UVICORN_SSL_KEYFILE", default=None)

DEBUG = config("DEBUG", default=False, cast=bool)
DOCS = config("DOCS", default=False, cast=bool)

ALLOWED_ORIGINS = config("ALLOWED_ORIGINS", default="*").split(",")

JWT_ACCESS_TOKEN_EXPIRE_MINUTES = config("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", cast=int, default=1440)
# empty means a random key is generated once and kept in the database
JWT_SECRET_KEY = config("JWT_SECRET_KEY", default="")
PASSWORD_RESET_TOKEN_EXPIRE_MINUTES = config("PASSWORD_RESET_TOKEN_EXPIRE_MINUTES", cast=int, default=30)

# EMAIL: PASSWORD
SUDOERS = (
    {config("SUDO_EMAIL").lower(): config("SUDO_PASSWORD")}
    if config("SUDO_EMAIL", default="") and config("SUDO_PASSWORD", default="")
    else {}
)

# Redis configuration
REDIS_ENABLED = config("REDIS_ENABLED", cast=bool, default=False)
REDIS_HOST = config("REDIS_HOST", default="127.0.0.1")
REDIS_PORT = config("REDIS_PORT", cast=int, default=6379)
REDIS_DB = config("REDIS_DB", cast=int, default=0)
REDIS_PASSWORD = config("REDIS_PASSWORD", default=None)
REDIS_SOCKET_TIMEOUT = config("REDIS_SOCKET_TIMEOUT", cast=int, default=5)
CACHE_DEFAULT_TTL = config("CACHE_DEFAULT_TTL", cast=int, default=300)  # 5 minutes

ENABLE_CACHE_WARMING = config("ENABLE_CACHE_WARMING", cast=bool, default=False)
CACHE_WARMING_DELAY = config("CACHE_WARMING_DELAY", cast=int, default=5)

# Interval jobs, all values are in seconds
JOB_ELECTION_STATUS_INTERVAL = config("JOB_ELECTION_STATUS_INTERVAL", cast=int, default=60)
JOB_OVERDUE_DUES_INTERVAL = config("JOB_OVERDUE_DUES_INTERVAL", cast=int, default=3600)
JOB_EXPIRED_NOTIFICATIONS_INTERVAL = config("JOB_EXPIRED_NOTIFICATIONS_INTERVAL", cast=int, default=3600)
