import os
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

# Heroku-style DATABASE_URL / PORT without a prefix -- map them to the
# HGW_-prefixed names that pydantic-settings expects.
if "DATABASE_URL" in os.environ and "HGW_DATABASE_URL" not in os.environ:
    _url = os.environ["DATABASE_URL"]
    if _url.startswith("sqlite:///"):
        _url = _url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    os.environ["HGW_DATABASE_URL"] = _url

if "PORT" in os.environ and "HGW_PORT" not in os.environ:
    os.environ["HGW_PORT"] = os.environ["PORT"]


PREP_STRATEGIES = ("gw", "wg", "mgw", "mwg")


class BatcherConfig(BaseModel):
    """Tunables shared by the inventory, allocator, prep controller and schedulers.

    Times are simulated milliseconds, RAM is in GB.
    """

    # Naive scheduler thresholds
    money_threshold: float = Field(0.75, gt=0, le=1)
    security_tolerance: float = Field(5.0, ge=0)

    # Fraction of max money to steal per hack.  The proto batcher searches
    # downward from this value (or ``max_hack_fraction`` when greedy).
    hack_fraction: float = Field(0.5, gt=0, le=1)
    max_hack_fraction: float = Field(0.95, gt=0, le=1)
    greedy: bool = False

    # Proto batch timing
    batch_gap: int = Field(250, ge=0)
    buffer_time: int = Field(100, ge=0)
    poll_interval: int = Field(1000, gt=0)
    batch_poll_interval: int = Field(100, gt=0)
    retry_delay: int = Field(1000, gt=0)

    # Control host
    home: str = "home"
    home_reserve_ram: float = Field(64.0, ge=0)

    # Run this many proto batches, then force a prep cycle.
    batches_per_prep: int = Field(100, gt=0)
    # Consecutive failed batches before a warning and a forced prep.
    max_failure: int = Field(1000, gt=0)

    prep_strategy: str = "gw"
    revalidate_before_dispatch: bool = False

    # Targets never to be chosen by candidate ranking.
    exclude_targets: list[str] = []


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./hgw.db"
    TICK_RATE: float = 5.0
    # Simulated milliseconds that elapse per real millisecond.
    TIME_SCALE: float = 1.0
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"
    WORLD_SEED: int | None = None

    MONEY_THRESHOLD: float = 0.75
    SECURITY_TOLERANCE: float = 5.0
    HACK_FRACTION: float = 0.5
    MAX_HACK_FRACTION: float = 0.95
    GREEDY: bool = False
    BATCH_GAP: int = 250
    BUFFER_TIME: int = 100
    POLL_INTERVAL: int = 1000
    BATCH_POLL_INTERVAL: int = 100
    RETRY_DELAY: int = 1000
    HOME_RESERVE_RAM: float = 64.0
    BATCHES_PER_PREP: int = 100
    MAX_FAILURE: int = 1000
    PREP_STRATEGY: str = "gw"
    REVALIDATE_BEFORE_DISPATCH: bool = False
    EXCLUDE_TARGETS: list[str] = []

    model_config = {"env_prefix": "HGW_"}

    def batcher_config(self, **overrides) -> BatcherConfig:
        """Build the component configuration from the environment settings."""
        values = {
            "money_threshold": self.MONEY_THRESHOLD,
            "security_tolerance": self.SECURITY_TOLERANCE,
            "hack_fraction": self.HACK_FRACTION,
            "max_hack_fraction": self.MAX_HACK_FRACTION,
            "greedy": self.GREEDY,
            "batch_gap": self.BATCH_GAP,
            "buffer_time": self.BUFFER_TIME,
            "poll_interval": self.POLL_INTERVAL,
            "batch_poll_interval": self.BATCH_POLL_INTERVAL,
            "retry_delay": self.RETRY_DELAY,
            "home_reserve_ram": self.HOME_RESERVE_RAM,
            "batches_per_prep": self.BATCHES_PER_PREP,
            "max_failure": self.MAX_FAILURE,
            "prep_strategy": self.PREP_STRATEGY,
            "revalidate_before_dispatch": self.REVALIDATE_BEFORE_DISPATCH,
            "exclude_targets": list(self.EXCLUDE_TARGETS),
        }
        values.update(overrides)
        return BatcherConfig(**values)


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
