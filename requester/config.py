from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Job defaults (used by the API when a field is omitted)
    DEFAULT_TIMEOUT_SECONDS: float = 30.0
    DEFAULT_DELAY_SECONDS: float = 0.0
    DEFAULT_MAX_RETRIES: int = 3

    # Transport Configuration
    # "simulated" never touches the network, "http" goes through httpx
    TRANSPORT_MODE: Literal["simulated", "http"] = "simulated"
    SIMULATION_SUCCESS_PROBABILITY: float = 0.5
    SIMULATION_LATENCY_SECONDS: float = 1.5

    # Event log
    PAYLOAD_PREVIEW_CHARS: int = 50

    # Storage Configuration
    STORE_BACKEND: Literal["memory", "sql"] = "memory"
    DATABASE_URL: str = "sqlite:///./requester.db"

    # Loads from a .env file in the root directory
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

# Singleton instance
settings = Settings()
