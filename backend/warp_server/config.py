import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from warp_server.errors import WarpError

DEFAULT_THROTTLE_LIMIT = 20
DEFAULT_THROTTLE_INTERVAL = 60


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class ServerConfig:
    """Server settings. Database URL, API key and master key are mandatory."""

    database_url: Optional[str] = None
    api_key: Optional[str] = None
    master_key: Optional[str] = None
    throttle_limit: int = DEFAULT_THROTTLE_LIMIT
    throttle_interval: int = DEFAULT_THROTTLE_INTERVAL
    storage_path: str = "./uploads"
    storage_url: str = "/files"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    sql_echo: bool = False

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Build a config from the environment (and a .env file, if present)"""
        load_dotenv()
        return cls(
            database_url=os.getenv("DATABASE_URL"),
            api_key=os.getenv("WARP_API_KEY"),
            master_key=os.getenv("WARP_MASTER_KEY"),
            throttle_limit=int(os.getenv("WARP_THROTTLE_LIMIT", DEFAULT_THROTTLE_LIMIT)),
            throttle_interval=int(os.getenv("WARP_THROTTLE_INTERVAL", DEFAULT_THROTTLE_INTERVAL)),
            storage_path=os.getenv("WARP_STORAGE_PATH", "./uploads"),
            storage_url=os.getenv("WARP_STORAGE_URL", "/files"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "*")) or ["*"],
            sql_echo=os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes"),
        )

    def validate(self) -> "ServerConfig":
        required = [
            (self.database_url, "DB configuration"),
            (self.api_key, "API Key"),
            (self.master_key, "Master Key"),
        ]
        for value, name in required:
            if not value:
                raise WarpError(WarpError.Code.MissingConfiguration, f"{name} must be set")
        if self.throttle_limit < 1 or self.throttle_interval < 1:
            raise WarpError(WarpError.Code.MissingConfiguration, "Throttle limit and interval must be positive")
        return self
