"""
Runtime configuration for the PictoTale pipeline.

All settings come from environment variables (loaded from ``.env`` by the
app and worker entry points) and are validated on read.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

PROVIDER_MODES = ["auto", "live", "simulated"]
STORY_STORES = ["database", "memory"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def get_env_int(var_name: str, default: int, min_value: int = 0, max_value: int = 1000) -> int:
    """Safely get and validate an integer environment variable."""
    value = os.getenv(var_name)
    if value is None or value == "":
        return default
    try:
        int_value = int(value)
    except ValueError:
        raise ValueError(f"{var_name} must be a valid integer, got '{value}'")
    if int_value < min_value or int_value > max_value:
        raise ValueError(
            f"{var_name} must be between {min_value} and {max_value}, got {int_value}"
        )
    return int_value


def get_env_float(var_name: str, default: float, min_value: float = 0.0, max_value: float = 3600.0) -> float:
    """Safely get and validate a float environment variable."""
    value = os.getenv(var_name)
    if value is None or value == "":
        return default
    try:
        float_value = float(value)
    except ValueError:
        raise ValueError(f"{var_name} must be a valid number, got '{value}'")
    if float_value < min_value or float_value > max_value:
        raise ValueError(
            f"{var_name} must be between {min_value} and {max_value}, got {float_value}"
        )
    return float_value


def get_env_str(var_name: str, default: Optional[str], allowed_values: Optional[List[str]] = None) -> Optional[str]:
    """Safely get and validate a string environment variable."""
    value = os.getenv(var_name, default)
    if allowed_values and value not in allowed_values:
        raise ValueError(
            f"{var_name} must be one of {allowed_values}, got '{value}'"
        )
    return value


def get_env_bool(var_name: str, default: bool) -> bool:
    value = os.getenv(var_name)
    if value is None or value == "":
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{var_name} must be a boolean, got '{value}'")


@dataclass
class Settings:
    """Validated configuration values."""
    google_api_key: Optional[str] = None
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.8
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    replicate_api_token: Optional[str] = None
    replicate_model: str = "black-forest-labs/flux-schnell"
    provider_mode: str = "auto"
    storage_dir: str = "data/media"
    public_base_url: str = "http://localhost:5000/media"
    music_base_url: str = "http://localhost:5000/static/music"
    placeholder_illustration_url: str = "http://localhost:5000/static/placeholder-illustration.png"
    db_path: str = "data/stories.db"
    story_store: str = "database"
    use_redis_cache: bool = False
    redis_url: str = "redis://localhost:6379/0"
    use_background_jobs: bool = False
    worker_threads: int = 4
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    illustration_count: int = 2
    provider_timeout: float = 60.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the environment.

        Raises:
            ValueError: If a variable is present but invalid
        """
        return cls(
            google_api_key=os.getenv("GOOGLE_API_KEY") or None,
            llm_model=get_env_str("LLM_MODEL", cls.llm_model),
            llm_temperature=get_env_float("LLM_TEMPERATURE", cls.llm_temperature, 0.0, 2.0),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY") or None,
            elevenlabs_voice_id=get_env_str("ELEVENLABS_VOICE_ID", cls.elevenlabs_voice_id),
            elevenlabs_model_id=get_env_str("ELEVENLABS_MODEL_ID", cls.elevenlabs_model_id),
            replicate_api_token=os.getenv("REPLICATE_API_TOKEN") or None,
            replicate_model=get_env_str("REPLICATE_MODEL", cls.replicate_model),
            provider_mode=get_env_str("PROVIDER_MODE", cls.provider_mode, allowed_values=PROVIDER_MODES),
            storage_dir=get_env_str("STORAGE_DIR", cls.storage_dir),
            public_base_url=get_env_str("PUBLIC_BASE_URL", cls.public_base_url).rstrip("/"),
            music_base_url=get_env_str("MUSIC_BASE_URL", cls.music_base_url).rstrip("/"),
            placeholder_illustration_url=get_env_str(
                "PLACEHOLDER_ILLUSTRATION_URL", cls.placeholder_illustration_url
            ),
            db_path=get_env_str("DB_PATH", cls.db_path),
            story_store=get_env_str("STORY_STORE", cls.story_store, allowed_values=STORY_STORES),
            use_redis_cache=get_env_bool("USE_REDIS_CACHE", cls.use_redis_cache),
            redis_url=get_env_str("REDIS_URL", cls.redis_url),
            use_background_jobs=get_env_bool("USE_BACKGROUND_JOBS", cls.use_background_jobs),
            worker_threads=get_env_int("WORKER_THREADS", cls.worker_threads, min_value=1, max_value=64),
            retry_max_attempts=get_env_int("RETRY_MAX_ATTEMPTS", cls.retry_max_attempts, min_value=1, max_value=10),
            retry_base_delay=get_env_float("RETRY_BASE_DELAY", cls.retry_base_delay, 0.0, 60.0),
            retry_max_delay=get_env_float("RETRY_MAX_DELAY", cls.retry_max_delay, 0.0, 600.0),
            illustration_count=get_env_int("ILLUSTRATION_COUNT", cls.illustration_count, min_value=1, max_value=6),
            provider_timeout=get_env_float("PROVIDER_TIMEOUT", cls.provider_timeout, 1.0, 600.0),
            log_level=get_env_str("LOG_LEVEL", cls.log_level, allowed_values=LOG_LEVELS),
        )
