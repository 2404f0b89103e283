from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Sampling defaults
    DEFAULT_SEED: int = 42
    DEFAULT_ITERATIONS: int = 10000
    DEFAULT_CONFIDENCE_LEVEL: float = 0.95
    MAX_ITERATIONS: int = 1_000_000
    SAMPLER_BATCH_SIZE: int = 2000
    SAMPLER_WORKERS: int = 4

    # Aggregation
    MIN_VARIANCE: float = 0.0004  # sd floor of 2 percentage points
    TREND_EPSILON: float = 0.005
    SHARE_SUM_TOLERANCE: float = 1e-6
    OTHERS_ENTITY_ID: str = "others"

    # External factor decay: "exponential" | "linear" | "none"
    FACTOR_DECAY_CURVE: str = "exponential"
    FACTOR_HALF_LIFE_SHORT_DAYS: float = 14.0
    FACTOR_HALF_LIFE_MEDIUM_DAYS: float = 60.0
    FACTOR_HALF_LIFE_LONG_DAYS: float = 180.0

    # Job layer
    JOB_WORKERS: int = 2
    JOB_RETENTION_SECONDS: int = 600

    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def factor_half_lives(self) -> dict[str, float]:
        return {
            "short": self.FACTOR_HALF_LIFE_SHORT_DAYS,
            "medium": self.FACTOR_HALF_LIFE_MEDIUM_DAYS,
            "long": self.FACTOR_HALF_LIFE_LONG_DAYS,
        }

    model_config = {
        "env_file": [".env", "../.env"],
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
