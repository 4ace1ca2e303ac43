"""
At-rest encryption for Google OAuth tokens (Fernet).

Stored values are Fernet tokens; a value that no longer decrypts (key
rotated, row tampered with) reads back as None, which the calendar code
treats as "not connected".
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import settings

logger = logging.getLogger(__name__)


class TokenCipher:
    def __init__(self, key: str):
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except ValueError as e:
            raise ValueError(f"TOKEN_ENCRYPTION_KEY is not a valid Fernet key: {e}") from e

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> Optional[str]:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Stored token could not be decrypted (wrong key or corrupt value)")
            return None


_cipher: Optional[TokenCipher] = None


def _load_key() -> str:
    key = settings.TOKEN_ENCRYPTION_KEY
    if key:
        return key
    if settings.ENVIRONMENT == "production":
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY must be set in production. Generate one with "
            "Fernet.generate_key() from the cryptography package."
        )
    # Anything encrypted with this key is unreadable after a restart
    logger.warning("TOKEN_ENCRYPTION_KEY not set; using a throwaway key (NOT FOR PRODUCTION)")
    return Fernet.generate_key().decode()


def get_token_cipher() -> TokenCipher:
    global _cipher
    if _cipher is None:
        _cipher = TokenCipher(_load_key())
    return _cipher


def reset_token_cipher() -> None:
    """Forget the cached cipher so the next call re-reads the key."""
    global _cipher
    _cipher = None


def encrypt_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return get_token_cipher().encrypt(token)


def decrypt_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return get_token_cipher().decrypt(token)
