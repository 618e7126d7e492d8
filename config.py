#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration module for Tubecollate.

Defines configuration parameters and loads values from environment variables.
"""

import os
import logging
from typing import Dict, Any

# Initialize a basic logger for config loading issues
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Default configuration values
_CONFIG_DEFAULTS: Dict[str, Any] = {
    # API Configuration
    "API_KEY": "",
    "API_KEY_ENV_VAR": "YOUTUBE_API_KEY",
    "API_KEY_SALT_ENV_VAR": "YOUTUBE_API_KEY_SALT",
    "API_KEY_PASSWORD_ENV_VAR": "YOUTUBE_API_KEY_PASSWORD",

    # YouTube API Settings
    "PAGE_SIZE": 50,  # Max allowed by YouTube API for playlistItems and videos.list
    "MAX_COMMENTS": 3,  # Top comments kept per video (upstream relevance order)
    "YOUTUBE_WATCH_URL": "https://www.youtube.com/watch?v=",

    # Timeouts & Upstream Client
    "API_TIMEOUT_SECONDS": 20.0,  # Timeout for a single API request
    "API_NUM_RETRIES": 0,  # Passed to the google client's own execute(num_retries=...)
    "FETCH_THREAD_POOL_SIZE": 16,  # Threads running blocking upstream calls

    # Aggregation Defaults (overridable per request)
    "DEFAULT_FETCH_VIDEO_DETAILS": True,
    "DEFAULT_FETCH_COMMENTS": True,
    "DEFAULT_BATCH_VIDEO_DETAILS": False,
    "DEFAULT_STRICT_MODE": False,
    "DEFAULT_WAIT_PER_PAGE": True,  # Bounded mode: join a page's tasks before the next page

    # Web Server
    "DEFAULT_ENCODING": "utf-8",
    "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,  # 1MB max request body size
    "SLOW_REQUEST_THRESHOLD_MS": 10000,

    # CORS
    "ALLOWED_ORIGINS": [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ],
}


class Config:
    """Configuration class that loads values from environment variables."""

    def __init__(self, load_from_env=True):
        """Initialize configuration with default values and optionally from environment.

        Args:
            load_from_env: Whether to load values from environment variables
        """
        # Set all default values as attributes
        for key, value in _CONFIG_DEFAULTS.items():
            if isinstance(value, list):
                value = list(value)
            setattr(self, key, value)

        # Load from environment if requested
        if load_from_env:
            self.load_from_env()

    def load_from_env(self):
        """Load configuration values from environment variables."""
        # Load API key
        self.API_KEY = os.environ.get(self.API_KEY_ENV_VAR, self.API_KEY)

        # Load CORS origins
        env_origins = os.environ.get("ALLOWED_ORIGINS", "")
        if env_origins:
            origins = [origin.strip() for origin in env_origins.split(",")]
            self.ALLOWED_ORIGINS = [o for o in origins if o]
            logger.info(f"CORS origins set from environment: {self.ALLOWED_ORIGINS}")

        # Load numeric values with type conversion
        self._load_int_from_env("PAGE_SIZE")
        self._load_int_from_env("MAX_COMMENTS")
        self._load_float_from_env("API_TIMEOUT_SECONDS")
        self._load_int_from_env("API_NUM_RETRIES")
        self._load_int_from_env("FETCH_THREAD_POOL_SIZE")
        self._load_int_from_env("MAX_CONTENT_LENGTH")
        self._load_int_from_env("SLOW_REQUEST_THRESHOLD_MS")

        # Aggregation defaults
        self._load_bool_from_env("DEFAULT_FETCH_VIDEO_DETAILS")
        self._load_bool_from_env("DEFAULT_FETCH_COMMENTS")
        self._load_bool_from_env("DEFAULT_BATCH_VIDEO_DETAILS")
        self._load_bool_from_env("DEFAULT_STRICT_MODE")
        self._load_bool_from_env("DEFAULT_WAIT_PER_PAGE")

        # The API caps both playlistItems and videos.list at 50 per call
        if not 1 <= self.PAGE_SIZE <= 50:
            logger.warning(f"PAGE_SIZE {self.PAGE_SIZE} outside 1..50, clamping.")
            self.PAGE_SIZE = max(1, min(self.PAGE_SIZE, 50))

        # Warn if API key is missing
        if not self.API_KEY:
            logger.warning(f"API key not found in env var {self.API_KEY_ENV_VAR}.")

    def _load_int_from_env(self, key):
        """Load an integer value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, int(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid integer value for {key}: {env_value}")
        return False

    def _load_float_from_env(self, key):
        """Load a float value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, float(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid float value for {key}: {env_value}")
        return False

    def _load_bool_from_env(self, key):
        """Load a boolean flag from environment variable.

        Accepts true/1/yes/on and false/0/no/off (case-insensitive).

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is None:
            return False
        normalized = env_value.strip().lower()
        if normalized in ("true", "1", "yes", "on"):
            setattr(self, key, True)
            return True
        if normalized in ("false", "0", "no", "off"):
            setattr(self, key, False)
            return True
        logger.warning(f"Invalid boolean value for {key}: {env_value}")
        return False


# Create a single instance of Config to be imported by other modules
config = Config(load_from_env=True)
