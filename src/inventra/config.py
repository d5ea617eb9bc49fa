import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load the appropriate .env file on module import
env = os.environ.get("INVENTRA_ENV", "development").lower()
env_file = f".env.{env}"
if os.path.exists(env_file):
    load_dotenv(env_file)
else:
    # Fall back to the default .env file
    load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    environment: str
    database_url: str
    pool_min_size: int
    pool_max_size: int
    pool_timeout: float
    slow_query_threshold_ms: int
    retry_attempts: int
    retry_base_delay_ms: int
    log_level: str
    log_json: bool

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            environment=env,
            database_url=os.environ.get(
                "DATABASE_URL", "postgresql://postgres@localhost:5432/inventra"
            ),
            pool_min_size=int(os.environ.get("DB_POOL_MIN_SIZE", "1")),
            pool_max_size=int(os.environ.get("DB_POOL_MAX_SIZE", "10")),
            pool_timeout=float(os.environ.get("DB_POOL_TIMEOUT", "2")),
            slow_query_threshold_ms=int(os.environ.get("SLOW_QUERY_THRESHOLD_MS", "1000")),
            retry_attempts=int(os.environ.get("RETRY_ATTEMPTS", "3")),
            retry_base_delay_ms=int(os.environ.get("RETRY_BASE_DELAY_MS", "1000")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_json=_env_bool("LOG_JSON", env == "production"),
        )


config = Config.from_env()
