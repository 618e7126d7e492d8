#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Utility helpers for Tubecollate.

Contains the performance timer used around pipeline stages and the API key
manager that retrieves, optionally decrypts, validates and obfuscates the
YouTube Data API key.
"""

import os
import re
import time
from base64 import urlsafe_b64encode
from contextlib import contextmanager
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from config import config
from exceptions import APIConfigurationError
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

ENCRYPTED_KEY_ENV_VAR = "YOUTUBE_API_KEY_ENCRYPTED"


# --- Performance Timer ---

@contextmanager
def performance_timer(operation_name: str, threshold_ms: float = 1000.0, log: Optional[StructuredLogger] = None):
    """Context manager for timing operations with threshold-based logging.

    Logs at DEBUG below `threshold_ms`, INFO above it and WARNING above ten
    times the threshold.

    Args:
        operation_name: A descriptive name for the operation being timed.
        threshold_ms: Threshold in milliseconds.
        log: Logger to use (e.g. one bound to a request id). Defaults to this module's.
    """
    log = log or logger
    start_time = time.monotonic()
    try:
        yield
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        fields = {"operation": operation_name, "duration_ms": round(duration_ms, 2)}

        if duration_ms > threshold_ms * 10:
            log.warning(f"SLOW OPERATION: '{operation_name}' took {duration_ms:.2f}ms", **fields)
        elif duration_ms > threshold_ms:
            log.info(f"Performance watch: '{operation_name}' took {duration_ms:.2f}ms", **fields)
        else:
            log.debug(f"Performance: '{operation_name}' completed in {duration_ms:.2f}ms", **fields)


# --- Secure API Key Manager ---

class SecureApiKeyManager:
    """Manages the YouTube API key with optional Fernet encryption.

    The plain key comes from `YOUTUBE_API_KEY`. When an encrypted key is given
    (argument or `YOUTUBE_API_KEY_ENCRYPTED`) together with a password and salt
    in the environment, the key is decrypted instead. A failed decryption is a
    configuration error, not a silent fallback.
    """

    def __init__(self, encrypted_key: Optional[str] = None,
                 key_env_var: str = config.API_KEY_ENV_VAR,
                 key_salt_env_var: str = config.API_KEY_SALT_ENV_VAR,
                 key_password_env_var: str = config.API_KEY_PASSWORD_ENV_VAR):
        self.encrypted_key_input = encrypted_key or os.environ.get(ENCRYPTED_KEY_ENV_VAR) or None
        self.key_env_var = key_env_var
        self.key_salt_env_var = key_salt_env_var
        self.key_password_env_var = key_password_env_var

        self._key: Optional[str] = None
        self._fernet: Optional[Fernet] = self._build_fernet()

    def _build_fernet(self) -> Optional[Fernet]:
        """Derive the Fernet cipher from password and salt, if both are set."""
        password = os.environ.get(self.key_password_env_var, "")
        salt = os.environ.get(self.key_salt_env_var, "")
        if not password or not salt:
            logger.debug("Encryption password or salt missing. API key handled in plain text.")
            return None

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt.encode(config.DEFAULT_ENCODING),
            iterations=100000,
        )
        encryption_key = urlsafe_b64encode(kdf.derive(password.encode(config.DEFAULT_ENCODING)))
        logger.info("API key encryption initialized.")
        return Fernet(encryption_key)

    @property
    def encryption_available(self) -> bool:
        return self._fernet is not None

    def get_key(self) -> str:
        """Get the API key, decrypting if necessary.

        Returns:
            str: The API key, or an empty string if none is configured.

        Raises:
            APIConfigurationError: If an encrypted key is configured but cannot be decrypted.
        """
        if self._key is not None:
            return self._key

        if self.encrypted_key_input:
            if not self._fernet:
                raise APIConfigurationError(
                    f"Encrypted API key provided but {self.key_password_env_var}/{self.key_salt_env_var} are not set."
                )
            try:
                self._key = self._fernet.decrypt(self.encrypted_key_input.encode(config.DEFAULT_ENCODING)).decode(config.DEFAULT_ENCODING)
            except InvalidToken as e:
                logger.error("Invalid token while decrypting API key. Check password/salt.")
                raise APIConfigurationError("Encrypted API key could not be decrypted.") from e
            logger.info("API key successfully decrypted.")
        else:
            self._key = os.environ.get(self.key_env_var, "")

        if not self._key:
            logger.warning("API key is missing.")
        return self._key

    def encrypt_key(self, key: str) -> str:
        """Encrypt a plain API key for storage in `YOUTUBE_API_KEY_ENCRYPTED`.

        Raises:
            APIConfigurationError: If password/salt are not configured.
        """
        if not self._fernet:
            raise APIConfigurationError("Encryption not available: password or salt missing.")
        return self._fernet.encrypt(key.encode(config.DEFAULT_ENCODING)).decode(config.DEFAULT_ENCODING)

    def validate_key(self, key_to_validate: Optional[str] = None) -> bool:
        """Heuristic check that the API key exists and looks like a Google API key.

        Length and charset problems only log warnings; only a missing key fails.
        """
        key = key_to_validate if key_to_validate is not None else self.get_key()

        if not key:
            logger.error("API key validation failed: Key is missing.", exc_info=False)
            return False

        # YouTube keys are typically 39 chars
        if not (30 <= len(key) <= 50):
            logger.warning(f"API key length ({len(key)}) is outside expected range (30-50).")

        if not re.match(r'^[A-Za-z0-9_-]+$', key):
            logger.warning("API key contains potentially invalid characters.")

        return True

    def obfuscate_key(self, key_to_obfuscate: Optional[str] = None) -> str:
        """Return an obfuscated version of the key suitable for logging (e.g. "AIza...abc")."""
        key = key_to_obfuscate if key_to_obfuscate is not None else self.get_key()

        if not key:
            return "[MISSING]"
        if len(key) > 7:
            return f"{key[:4]}...{key[-3:]}"
        return f"{key[0]}...{'*' * (len(key) - 1)}"
