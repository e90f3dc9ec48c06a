# backend/config.py
# Settings for the project tracker backend, read once from the environment at import

import os
from typing import List, Literal

# Deployment stage
ENV: Literal["dev", "staging", "prod"] = os.environ.get("ENV", "dev")  # type: ignore
IS_DEV = (ENV == "dev")
IS_STAGING = (ENV == "staging")
IS_PROD = (ENV == "prod")

# Identity tokens are minted by the sign-in provider; this service only verifies them
SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

# Storage: a PostgreSQL URL wins, otherwise a SQLite file next to the package
DATABASE_URL = os.environ.get("DATABASE_URL", "").strip()
DATABASE_PATH = os.environ.get("DATABASE_PATH", "projects.db")
IS_POSTGRES = DATABASE_URL.startswith(("postgres://", "postgresql://"))
IS_SQLITE = not IS_POSTGRES

# Notification feed page size
NOTIFICATIONS_LIMIT = int(os.environ.get("NOTIFICATIONS_LIMIT", "50"))


def _cors_origins() -> List[str]:
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]  # web client dev server
    if IS_STAGING or IS_PROD:
        extra = os.environ.get("CORS_ORIGINS", "")
        origins.extend(o.strip() for o in extra.split(",") if o.strip())
    return origins


CORS_ORIGINS = _cors_origins()

print(f"[CONFIG] ENV={ENV}, storage={'PostgreSQL' if IS_POSTGRES else f'SQLite ({DATABASE_PATH})'}")
print(f"[CONFIG] Notifications page size: {NOTIFICATIONS_LIMIT}")
