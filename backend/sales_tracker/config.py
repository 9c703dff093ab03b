import os
import sys
from dotenv import load_dotenv

load_dotenv()

# Application version
VERSION = "1.2.0"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./sales.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
# Production deployments must set DEBUG=false
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
# Empty means same-origin only
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = _cors_env.split(",") if _cors_env else []

# JWT settings
_DEFAULT_SECRET_KEY = "change-this-secret-key-in-production-32chars"
SECRET_KEY = os.getenv("SECRET_KEY", _DEFAULT_SECRET_KEY)

if not DEBUG and SECRET_KEY == _DEFAULT_SECRET_KEY:
    print(
        "[SECURITY ERROR] The default SECRET_KEY is in use with DEBUG=false. "
        "Set the SECRET_KEY environment variable to a long random string.",
        file=sys.stderr,
    )
    sys.exit(1)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "8"))

# Ordered roster of employees allowed to log daily sales
EMPLOYEES = tuple(
    name.strip() for name in os.getenv("EMPLOYEES", "Ingrid,Marta").split(",") if name.strip()
)

# Default monthly revenue goal, 0 disables goal tracking
MONTHLY_GOAL = float(os.getenv("MONTHLY_GOAL", "0"))

LOCALE = os.getenv("LOCALE", "es_ES")
EXPORT_FILENAME_PREFIX = os.getenv("EXPORT_FILENAME_PREFIX", "ventas_altonadock")

# CSV upload limit
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))

# Requests per window
API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", "100"))
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
