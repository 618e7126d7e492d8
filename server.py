#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Uvicorn server entry point for the Tubecollate application.

Handles environment loading (.env), final logging configuration based on
environment, and starts the Uvicorn server process.
"""

import logging
import os
from pathlib import Path
from typing import Optional

import uvicorn
from dotenv import load_dotenv

from config import config
from exceptions import APIConfigurationError
from logging_config import setup_logging
from utils import SecureApiKeyManager


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


def _api_key_problem() -> Optional[str]:
    """Describe why no usable API key is configured, or return None."""
    try:
        if SecureApiKeyManager().get_key():
            return None
    except APIConfigurationError as e:
        return e.message
    return "No YouTube API key is configured."


def main():
    """Load .env, configure logging and run uvicorn."""
    # 1. Load Environment Variables from .env file (if it exists)
    env_path = Path(".") / ".env"
    if env_path.is_file():
        load_dotenv(dotenv_path=env_path, override=True)
        print(f"Loaded environment variables from: {env_path.resolve()}")
    else:
        print(".env file not found, using system environment variables.")

    # 2. Re-read configuration so .env values override defaults
    config.load_from_env()

    # 3. Setup Logging based on final configuration
    log_level_console = getattr(logging, os.environ.get("LOG_LEVEL_CONSOLE", "INFO").upper(), logging.INFO)
    log_level_file = getattr(logging, os.environ.get("LOG_LEVEL_FILE", "DEBUG").upper(), logging.DEBUG)
    setup_logging(
        log_level_console=log_level_console,
        log_level_file=log_level_file,
        structured=_env_flag("LOG_STRUCTURED", "true"),
    )

    key_problem = _api_key_problem()
    if key_problem:
        logging.warning("=" * 80)
        logging.warning(f" WARNING: {key_problem}")
        logging.warning(" Define YOUTUBE_API_KEY, or YOUTUBE_API_KEY_ENCRYPTED with its password and salt,")
        logging.warning(" in a .env file or as environment variables.")
        logging.warning(" The server will start, but /playlist will answer 503.")
        logging.warning("=" * 80)

    # 4. Uvicorn parameters
    run_host = os.environ.get("HOST", "127.0.0.1")
    try:
        run_port = int(os.environ.get("PORT", "8000"))
    except ValueError:
        logging.warning(f"Invalid PORT environment variable '{os.environ.get('PORT')}', using default 8000.")
        run_port = 8000

    debug_mode = _env_flag("DEBUG")
    uvicorn_log_level = os.environ.get("UVICORN_LOG_LEVEL", "debug" if debug_mode else "info").lower()

    logging.info(f"Starting Uvicorn server on http://{run_host}:{run_port}")
    logging.info(f"Debug mode: {debug_mode}, Uvicorn Log Level: {uvicorn_log_level}")

    # One worker: the engine and its thread pool are per-process state
    uvicorn.run(
        "main:app",
        host=run_host,
        port=run_port,
        reload=debug_mode,
        log_level=uvicorn_log_level,
    )


if __name__ == "__main__":
    main()
