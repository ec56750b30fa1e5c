"""
Environment-driven settings. Read once at import; .env is loaded by main.py.
"""

import os


def _split_csv(value: str) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes"}


class Settings:
    PROJECT_NAME = os.getenv("PROJECT_NAME", "Formulary PA Lookup")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Storage
    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "database")  # database | memory
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./formulary.db")
    SEED_ON_STARTUP = _as_bool(os.getenv("SEED_ON_STARTUP", "true"))

    # GET /api/search falls back to this formulary when none is given
    DEFAULT_FORMULARY_ID = int(os.getenv("DEFAULT_FORMULARY_ID", "1"))

    # LLM
    GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
    LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1024"))
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

    CORS_ORIGINS = _split_csv(
        os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )


settings = Settings()
