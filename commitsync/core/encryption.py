"""Decryption of GitHub tokens stored at rest.

Tokens are written by the account-settings flow (outside this service) with
Fernet symmetric encryption. The sync jobs only ever need the plaintext at
the moment a task is enqueued, so this module exposes decrypt plus the
matching encrypt used by fixtures and admin scripts.

Generate a new key:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

import logging

from cryptography.fernet import Fernet, InvalidToken

from commitsync.config import settings

logger = logging.getLogger(__name__)


class TokenEncryption:
    """Encrypts and decrypts GitHub tokens with the configured Fernet key.

    If no key is configured, values pass through unchanged so that
    development databases with plaintext tokens keep working.
    """

    def __init__(self, key: str | None = None) -> None:
        self._cipher: Fernet | None = None

        key = settings.token_encryption_key if key is None else key
        if key:
            try:
                self._cipher = Fernet(key.encode())
            except (ValueError, TypeError):
                logger.warning("token_encryption_key has invalid format, decryption disabled")
        elif not settings.debug:
            logger.warning(
                "SECURITY: token_encryption_key is not configured. "
                "GitHub tokens are expected in plaintext."
            )

    @property
    def is_enabled(self) -> bool:
        return self._cipher is not None

    def encrypt(self, plaintext: str) -> str:
        if not self._cipher:
            return plaintext
        return self._cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored token.

        Values that are not valid Fernet tokens (stored before encryption
        was enabled) are returned unchanged.
        """
        if not self._cipher:
            return ciphertext

        try:
            return self._cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            return ciphertext


# Singleton instance for application-wide use
token_encryption = TokenEncryption()
