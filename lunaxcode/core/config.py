import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./lunaxcode.db")

# "database" (SQLAlchemy) or "memory" (development only, lost on restart)
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "database").lower()

# ✅ Security
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# ✅ AI generation
# Base URL of the same-origin forwarding endpoint. Left unset on the server,
# where every provider is called directly.
AI_PROXY_URL = os.getenv("AI_PROXY_URL")
DEFAULT_MAX_GENERATIONS_PER_USER = 3
PROXY_RATE_LIMIT_PER_MINUTE = int(os.getenv("PROXY_RATE_LIMIT_PER_MINUTE", "20"))
PROXY_RATE_LIMIT_PER_HOUR = int(os.getenv("PROXY_RATE_LIMIT_PER_HOUR", "100"))

# ✅ HTTP
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# "1" runs Alembic migrations at startup instead of create_all
RUN_MIGRATIONS = os.getenv("RUN_MIGRATIONS", "0") == "1"
