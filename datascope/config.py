"""
Application Settings — All via environment variables with sensible defaults.
"""
import os
from typing import Optional


class Settings:
    # ── Server ──
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8001"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ── CORS ──
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:8000,http://localhost:3000,*")

    # ── Column classification ──
    # The quick exploratory pass used 10 rows / 0.8 and required a name hint for dates.
    CLASSIFY_SAMPLE_SIZE: int = int(os.getenv("CLASSIFY_SAMPLE_SIZE", "100"))
    CLASSIFY_THRESHOLD: float = float(os.getenv("CLASSIFY_THRESHOLD", "0.7"))
    REQUIRE_DATE_NAME_HINT: bool = os.getenv("REQUIRE_DATE_NAME_HINT", "false").lower() == "true"

    # ── Correlations ──
    EXPLORATORY_CORRELATION_THRESHOLD: float = float(os.getenv("EXPLORATORY_CORRELATION_THRESHOLD", "0.1"))
    SIGNIFICANT_CORRELATION_THRESHOLD: float = float(os.getenv("SIGNIFICANT_CORRELATION_THRESHOLD", "0.3"))

    # ── AI insights (optional; rules_only mode needs none of these) ──
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "rules_only")
    AI_API_KEY: str = os.getenv("AI_API_KEY", "")
    AI_MODEL: str = os.getenv("AI_MODEL", "gpt-4o-mini")
    AI_BASE_URL: Optional[str] = os.getenv("AI_BASE_URL")
    AI_TIMEOUT: int = int(os.getenv("AI_TIMEOUT", "15"))
    AI_SAMPLE_ROWS: int = int(os.getenv("AI_SAMPLE_ROWS", "20"))


settings = Settings()
