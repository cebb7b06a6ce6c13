"""Application settings via pydantic-settings (reads from .env).

All environment variables are documented here. A .env file in the working
directory is loaded automatically; unknown keys are ignored.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Agent REST gateway; /agents and /messaging/* live under this prefix
    api_base_url: str = "http://localhost:3000/api"

    # Socket.IO origin for streaming chunks and final broadcasts
    socket_url: str = "http://localhost:3000"
    socket_transports: list[str] = ["websocket", "polling"]

    # Message server the channel belongs to (the agent runtime uses the nil UUID)
    message_server_id: str = "00000000-0000-0000-0000-000000000000"

    # Shown until agent discovery returns a real name
    default_agent_name: str = "Eyebalz"

    http_timeout_sec: float = 10.0

    # Turn completion timers
    # The agent never says "done": a turn ends after 3s of broadcast silence,
    # 30s without stream chunks, or 60s after the send, whichever comes first.
    done_debounce_sec: float = 3.0
    stream_stale_sec: float = 30.0
    turn_timeout_sec: float = 60.0

    # Parsed-block memo size (roughly the visible message window)
    parse_cache_size: int = 64

    # Application metadata
    app_name: str = "flash-chat"
    app_version: str = "0.1.0"
    debug: bool = False


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
