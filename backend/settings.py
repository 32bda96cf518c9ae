import os
from pathlib import Path

from dotenv import load_dotenv

from models.common import parse_bool

# Load environment variables from .env file in the backend folder
backend_dir = Path(__file__).parent
env_path = backend_dir / ".env"
load_dotenv(env_path)

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:  # pragma: no cover
    raise ValueError("JWT_SECRET must be set")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", str(7 * 24 * 60)))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# When set, only addresses ending with @<domain> may sign up
ALLOWED_EMAIL_DOMAIN = os.getenv("ALLOWED_EMAIL_DOMAIN") or None

API_PREFIX = os.getenv("API_PREFIX", "")
BACKEND_DIR = Path(__file__).parent
DATABASE_PATH = BACKEND_DIR / "campus.sqlite"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
PROJECT_PATH = BACKEND_DIR.parent

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BACKEND_DIR / "uploads")))
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))

PRODUCTION = parse_bool(os.getenv("PRODUCTION", False))
TESTING_MODE = parse_bool(os.getenv("TESTING_MODE", False))  # don't send emails

BASE_URL = os.getenv("BASE_URL", "http://127.0.0.1:3000")

# --- Email / SMTP configuration ---
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = parse_bool(os.getenv("SMTP_USE_TLS", True))
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", "no-reply@campus.local")
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Campus Connect")
