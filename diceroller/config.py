from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DICEROLLER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Upper bound on consecutive re-rolls of one exploding term. An explosion
    # ends on its own almost surely; this only guards pathological thresholds.
    explode_max_iterations: int = Field(default=100_000, gt=0)

    # Largest dice count and face count a single notation group may ask for.
    max_dice: int = Field(default=100, gt=0)
    max_sides: int = Field(default=1000, ge=2)

    # Logging level used by LogTracer when none is given explicitly.
    trace_log_level: str = "DEBUG"


settings = Settings()
