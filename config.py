from dotenv import load_dotenv
import os

load_dotenv()  # Load variables from .env file

# JWT configuration
SECRET_KEY = os.getenv("SECRET_KEY", "default-secret")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(7 * 24 * 60)))

# Storage
DATABASE_PATH = os.getenv("DATABASE_PATH", "club.db")
# Seconds to wait for another writer before reporting a write conflict
DATABASE_TIMEOUT = float(os.getenv("DATABASE_TIMEOUT", "5"))

# CORS
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

UPCOMING_EVENTS_LIMIT = 10
