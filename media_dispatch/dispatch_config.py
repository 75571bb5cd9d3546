"""
Media Dispatch - Configuration Management
Reads provider base URLs, polling limits and default models from
config.ini or environment variables

Provider credentials are never read from here: they are passed per call.
"""

import os
import configparser
import logging
from pathlib import Path

logger = logging.getLogger("[MediaDispatch]")

# Package directory
PACKAGE_DIR = Path(__file__).parent
CONFIG_FILE = PACKAGE_DIR / "config.ini"

# Environment variable names
ENV_CONFIG_FILE = "MEDIA_DISPATCH_CONFIG"
ENV_KIE_BASE_URL = "MEDIA_DISPATCH_KIE_BASE_URL"
ENV_GEMINI_BASE_URL = "MEDIA_DISPATCH_GEMINI_BASE_URL"
ENV_POLL_INTERVAL = "MEDIA_DISPATCH_POLL_INTERVAL"
ENV_MAX_WAIT = "MEDIA_DISPATCH_MAX_WAIT"
ENV_DEFAULT_IMAGE_MODEL = "MEDIA_DISPATCH_DEFAULT_IMAGE_MODEL"
ENV_DEFAULT_VIDEO_MODEL = "MEDIA_DISPATCH_DEFAULT_VIDEO_MODEL"

# Default values
DEFAULT_KIE_BASE_URL = "https://api.kie.ai/api/v1"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_POLL_INTERVAL = 3.0  # seconds
DEFAULT_MAX_WAIT = 120.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 60  # seconds per HTTP call
DEFAULT_IMAGE_MODEL = "nano-banana-pro"
DEFAULT_VIDEO_MODEL = "kling-2-6-text-to-video"


class DispatchConfig:
    """Configuration manager for the generation dispatcher"""

    _instance = None
    _config = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    @property
    def config_file(self) -> Path:
        """Config file path, overridable via MEDIA_DISPATCH_CONFIG"""
        env_path = os.environ.get(ENV_CONFIG_FILE)
        if env_path:
            return Path(env_path)
        return CONFIG_FILE

    def _load_config(self):
        """Load configuration from file"""
        self._config = configparser.ConfigParser()
        config_file = self.config_file
        if config_file.exists():
            self._config.read(config_file)
            logger.info(f"Loaded config from {config_file}")
        else:
            logger.debug(f"Config file not found: {config_file}, using environment variables or defaults")

    def reload(self):
        """Reload configuration from file"""
        self._load_config()

    def _get_str(self, env_name: str, section: str, option: str, default: str) -> str:
        """Resolve a string setting: environment, then config.ini, then default"""
        env_value = os.environ.get(env_name) if env_name else None
        if env_value:
            return env_value

        try:
            value = self._config.get(section, option, fallback=None)
            if value:
                return value
        except (configparser.NoSectionError, configparser.NoOptionError):
            pass

        return default

    def _get_float(self, env_name: str, section: str, option: str, default: float) -> float:
        raw = self._get_str(env_name, section, option, None)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError:
            logger.warning(f"Invalid value for {section}.{option}: {raw!r}, using {default}")
            return default
        if value <= 0:
            logger.warning(f"{section}.{option} must be positive, using {default}")
            return default
        return value

    @property
    def kie_base_url(self) -> str:
        """
        Get KIE.ai API base URL with priority:
        1. Environment variable MEDIA_DISPATCH_KIE_BASE_URL
        2. config.ini [API] kie_base_url
        3. Default value
        """
        return self._get_str(ENV_KIE_BASE_URL, "API", "kie_base_url", DEFAULT_KIE_BASE_URL).rstrip("/")

    @property
    def gemini_base_url(self) -> str:
        """Get Gemini API base URL (same priority as kie_base_url)"""
        return self._get_str(ENV_GEMINI_BASE_URL, "API", "gemini_base_url", DEFAULT_GEMINI_BASE_URL).rstrip("/")

    @property
    def request_timeout(self) -> float:
        """Timeout for a single HTTP call in seconds"""
        return self._get_float(None, "API", "request_timeout", DEFAULT_REQUEST_TIMEOUT)

    @property
    def poll_interval(self) -> float:
        """Seconds between two status checks"""
        return self._get_float(ENV_POLL_INTERVAL, "POLLING", "poll_interval", DEFAULT_POLL_INTERVAL)

    @property
    def max_wait(self) -> float:
        """Maximum total seconds spent polling one task"""
        return self._get_float(ENV_MAX_WAIT, "POLLING", "max_wait", DEFAULT_MAX_WAIT)

    @property
    def default_image_model(self) -> str:
        return self._get_str(ENV_DEFAULT_IMAGE_MODEL, "MODELS", "default_image_model", DEFAULT_IMAGE_MODEL)

    @property
    def default_video_model(self) -> str:
        return self._get_str(ENV_DEFAULT_VIDEO_MODEL, "MODELS", "default_video_model", DEFAULT_VIDEO_MODEL)

    def base_urls(self) -> dict:
        """Provider name -> base URL, as consumed by the model registry"""
        return {
            "kie": self.kie_base_url,
            "gemini": self.gemini_base_url,
        }


# Singleton instance
def get_config() -> DispatchConfig:
    """Get the singleton config instance"""
    return DispatchConfig()
