"""
CLI Configuration Management
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

from dotenv import load_dotenv


@dataclass
class CLIConfig:
    """Configuration for the BizForge CLI and push-channel client"""

    # Server
    api_base_url: str = "http://localhost:8000/api/v1"
    ws_base_url: str = "ws://localhost:8000"
    timeout: int = 30  # HTTP request timeout, seconds

    # Push channel
    heartbeat_interval: float = 30.0  # seconds between pings
    max_reconnect_attempts: int = 5
    base_reconnect_delay_ms: int = 1000
    max_reconnect_delay_ms: int = 10000
    close_on_terminal: bool = True  # stop watching after completed/failed

    # Output
    verbose: bool = False

    def progress_url(self, job_id: str) -> str:
        return f"{self.ws_base_url.rstrip('/')}/ws/generation-progress/{job_id}"

    def load_from_file(self, config_path: str) -> None:
        """Load configuration from JSON file"""
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
                for key, value in data.items():
                    if hasattr(self, key):
                        setattr(self, key, value)

    @classmethod
    def load_default(cls, config_path: Optional[str] = None) -> "CLIConfig":
        """Defaults, then an optional JSON file, then .env / environment variables"""
        config = cls()
        if config_path:
            config.load_from_file(config_path)

        load_dotenv()
        config._load_from_env()
        return config

    def _load_from_env(self) -> None:
        """Load configuration from environment variables"""
        env_mappings = {
            "BIZFORGE_API_URL": "api_base_url",
            "BIZFORGE_WS_URL": "ws_base_url",
            "BIZFORGE_TIMEOUT": ("timeout", int),
            "BIZFORGE_HEARTBEAT_INTERVAL": ("heartbeat_interval", float),
            "BIZFORGE_MAX_RECONNECT_ATTEMPTS": ("max_reconnect_attempts", int),
            "BIZFORGE_VERBOSE": ("verbose", lambda x: x.lower() == "true"),
        }

        for env_var, mapping in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                if isinstance(mapping, tuple):
                    attr, converter = mapping
                    setattr(self, attr, converter(value))
                else:
                    setattr(self, mapping, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return asdict(self)
