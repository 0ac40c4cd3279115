import os
from pathlib import Path

# Settings come from the environment (Railway, docker-compose or a local shell)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./mangrove_watch.db")

SECRET_KEY = os.getenv("SECRET_KEY", "a_default_secret_key_for_local_dev")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", Path(__file__).parent / "uploads"))
MAX_PHOTOS = int(os.getenv("MAX_PHOTOS", 5))
MAX_PHOTO_BYTES = int(os.getenv("MAX_PHOTO_BYTES", 5 * 1024 * 1024))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "DefaultAdminPass123!")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
