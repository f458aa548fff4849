import os
from dotenv import load_dotenv

load_dotenv()

# =====================================================
# ENV
# =====================================================
ENV = os.getenv("ENV", "development")

# =====================================================
# DATABASE
# =====================================================
MONGO_URI = (
    os.getenv("MONGODB_URI")
    or os.getenv("MONGO_URI")
    or "mongodb://localhost:27017/garmentflow"
)

# =====================================================
# JWT
# =====================================================
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_DAYS = int(os.getenv("ACCESS_TOKEN_DAYS", 30))

# =====================================================
# ROLE CACHE
# =====================================================
ROLE_CACHE_TTL_SECONDS = int(os.getenv("ROLE_CACHE_TTL_SECONDS", 60 * 60))

# =====================================================
# STARTUP
# =====================================================
ENSURE_INDEXES_ON_STARTUP = os.getenv("ENSURE_INDEXES_ON_STARTUP", "true").lower() == "true"

# =====================================================
# CORS
# =====================================================
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")


def validate_production_env() -> None:
    if (ENV or "").lower() != "production":
        return

    problems = [
        key for key, value in (
            ("JWT_SECRET", JWT_SECRET),
            ("MONGODB_URI", os.getenv("MONGODB_URI") or os.getenv("MONGO_URI")),
        )
        if not (value or "").strip() or value.startswith("CHANGE_THIS")
    ]
    if ROLE_CACHE_TTL_SECONDS <= 0:
        problems.append("ROLE_CACHE_TTL_SECONDS")
    if "*" in CORS_ALLOWED_ORIGINS:
        problems.append("CORS_ALLOWED_ORIGINS")

    if problems:
        raise RuntimeError(f"Production env misconfigured. Invalid keys: {', '.join(sorted(problems))}")
