import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tournament.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

# Standings points
POINTS_PER_WIN = _int_env("POINTS_PER_WIN", 3)
POINTS_PER_DRAW = _int_env("POINTS_PER_DRAW", 1)
POINTS_PER_LOSS = _int_env("POINTS_PER_LOSS", 0)

# Scheduling (minutes)
MATCH_DURATION_MINUTES = _int_env("MATCH_DURATION_MINUTES", 40)
BREAK_DURATION_MINUTES = _int_env("BREAK_DURATION_MINUTES", 10)
MIN_REST_MINUTES = _int_env("MIN_REST_MINUTES", 60)
BULK_REST_WINDOW_MINUTES = _int_env("BULK_REST_WINDOW_MINUTES", 60)
UPDATE_REST_WINDOW_MINUTES = _int_env("UPDATE_REST_WINDOW_MINUTES", 90)

# Transactions
TRANSACTION_MAX_RETRIES = _int_env("TRANSACTION_MAX_RETRIES", 3)
REQUEST_DEADLINE_SECONDS = _float_env("REQUEST_DEADLINE_SECONDS", 30.0)
