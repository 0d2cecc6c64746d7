"""
Client Configuration Management
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any

from dotenv import load_dotenv

from alumnitrack.exceptions import ConfigurationError


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ClientConfig:
    """Configuration for the AlumniTrack client"""

    # API settings
    api_base_url: str = "http://localhost:5000/api"
    timeout: float = 30.0

    # Survey prompting
    survey_throttle_minutes: int = 60
    auto_survey_prompt: bool = True

    # Local files (relative names resolve inside config_dir)
    config_dir: str = field(default_factory=lambda: str(Path.home() / ".alumnitrack"))
    storage_file: str = "storage.json"
    credentials_file: str = "credentials.json"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    verbose: bool = False

    def __post_init__(self):
        """Initialize paths and directories"""
        self._resolve_paths()

    def _resolve_paths(self) -> None:
        Path(self.config_dir).mkdir(parents=True, exist_ok=True)

        if not os.path.isabs(self.storage_file):
            self.storage_file = str(Path(self.config_dir) / self.storage_file)
        if not os.path.isabs(self.credentials_file):
            self.credentials_file = str(Path(self.config_dir) / self.credentials_file)

    def load_from_file(self, config_path: str) -> None:
        """Load configuration from JSON file"""
        path = Path(config_path)
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid config file {path}: {e}")
            if not isinstance(data, dict):
                raise ConfigurationError(f"Config file {path} must contain a JSON object")
            for key, value in data.items():
                if hasattr(self, key):
                    setattr(self, key, value)
            self._resolve_paths()

    def save_to_file(self, config_path: Optional[str] = None) -> None:
        """Save configuration to JSON file"""
        path = Path(config_path or (Path(self.config_dir) / "config.json"))
        with open(path, 'w') as f:
            json.dump(asdict(self), f, indent=2)

    @classmethod
    def load_default(
        cls,
        env_file: Optional[str] = None,
        config_file: Optional[str] = None
    ) -> "ClientConfig":
        """
        Load configuration, later sources winning:
        defaults, config.json in the config directory, `config_file`,
        then environment variables (including a .env file).
        """
        load_dotenv(env_file)

        config_dir = os.environ.get("ALUMNITRACK_CONFIG_DIR")
        config = cls(config_dir=config_dir) if config_dir else cls()

        default_config_path = Path(config.config_dir) / "config.json"
        if default_config_path.exists():
            config.load_from_file(str(default_config_path))

        if config_file:
            if not Path(config_file).exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
            config.load_from_file(config_file)

        # Override with environment variables
        config._load_from_env()

        return config

    def _load_from_env(self) -> None:
        """Load configuration from environment variables"""
        env_mappings = {
            "ALUMNITRACK_API_URL": "api_base_url",
            "ALUMNITRACK_TIMEOUT": ("timeout", float),
            "ALUMNITRACK_SURVEY_THROTTLE_MINUTES": ("survey_throttle_minutes", int),
            "ALUMNITRACK_AUTO_SURVEY_PROMPT": ("auto_survey_prompt", _parse_bool),
            "ALUMNITRACK_LOG_LEVEL": "log_level",
            "ALUMNITRACK_LOG_FILE": "log_file",
            "ALUMNITRACK_VERBOSE": ("verbose", _parse_bool),
        }

        for env_var, mapping in env_mappings.items():
            value = os.environ.get(env_var)
            if value:
                if isinstance(mapping, tuple):
                    attr, converter = mapping
                    try:
                        setattr(self, attr, converter(value))
                    except ValueError:
                        raise ConfigurationError(f"Invalid value for {env_var}: {value!r}")
                else:
                    setattr(self, mapping, value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary"""
        return asdict(self)
