"""
Secret Cipher
=============

Symmetric encryption for secrets stored at rest.

Secrets are encrypted with AES-256-CBC (PKCS7 padding) under a key derived
once from the configured master secret with SHA-256. Every call uses a fresh
random IV, and the stored form is ``<iv_b64>:<ciphertext_b64>``.

Records written before encryption was introduced hold plain text. Those values
have no ``:`` delimiter and are returned unchanged by the legacy read path.
That path gives no protection to un-migrated records and can be switched off
with ``ALLOW_LEGACY_PLAINTEXT_SECRETS=false`` once they have been rewritten.
"""

import base64
import binascii
import hashlib
import logging
import os
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from config import INSECURE_DEFAULT_ENCRYPTION_KEY
from credentials.errors import DecryptionFailure, EncryptionFailure

# Set up logging
logger = logging.getLogger(__name__)

DELIMITER = ":"
IV_LENGTH = 16


class SecretCipher:
    """Encrypts and decrypts secret strings with a key derived from a master secret."""

    def __init__(self, master_secret: str, allow_legacy_plaintext: bool = True):
        if not master_secret:
            raise EncryptionFailure("An encryption master secret is required")
        self._master_secret = master_secret
        self._key: Optional[bytes] = None
        self.allow_legacy_plaintext = allow_legacy_plaintext

    @classmethod
    def from_settings(cls, settings) -> "SecretCipher":
        """Build a cipher from application settings, warning about insecure keys."""
        check_master_secret(settings.TOKEN_ENCRYPTION_KEY, settings.is_production)
        return cls(
            settings.TOKEN_ENCRYPTION_KEY,
            allow_legacy_plaintext=settings.ALLOW_LEGACY_PLAINTEXT_SECRETS,
        )

    @property
    def key(self) -> bytes:
        # 32-byte key, derived on first use
        if self._key is None:
            self._key = hashlib.sha256(self._master_secret.encode("utf-8")).digest()
        return self._key

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret for storage.

        Args:
            plaintext: The secret to encrypt, must be non-empty

        Returns:
            str: ``<iv_b64>:<ciphertext_b64>``

        Raises:
            EncryptionFailure: If the plaintext is empty or encryption fails
        """
        if not plaintext:
            raise EncryptionFailure("Refusing to encrypt an empty secret")

        try:
            iv = os.urandom(IV_LENGTH)
            padder = padding.PKCS7(algorithms.AES.block_size).padder()
            padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

            encryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).encryptor()
            encrypted = encryptor.update(padded) + encryptor.finalize()
        except Exception as e:
            logger.error(f"Encryption failed: {type(e).__name__}")
            raise EncryptionFailure(cause=e)

        iv_b64 = base64.b64encode(iv).decode("ascii")
        data_b64 = base64.b64encode(encrypted).decode("ascii")
        return f"{iv_b64}{DELIMITER}{data_b64}"

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a stored secret.

        Values without the delimiter are handed to the legacy read path.

        Raises:
            DecryptionFailure: If the value is malformed or cannot be decrypted
        """
        if DELIMITER not in ciphertext:
            return self._legacy_read(ciphertext)

        iv_b64, data_b64 = ciphertext.split(DELIMITER, 1)
        if not iv_b64 or not data_b64:
            raise DecryptionFailure("Invalid encrypted data format")

        try:
            iv = base64.b64decode(iv_b64, validate=True)
            encrypted = base64.b64decode(data_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionFailure("Invalid encrypted data encoding", cause=e)

        if len(iv) != IV_LENGTH:
            raise DecryptionFailure("Invalid initialization vector length")

        try:
            decryptor = Cipher(algorithms.AES(self.key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()

            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"Decryption failed: {type(e).__name__}")
            raise DecryptionFailure(cause=e)

    def _legacy_read(self, value: str) -> str:
        # Pre-encryption records were stored verbatim
        if not self.allow_legacy_plaintext:
            raise DecryptionFailure("Stored secret is not in encrypted format")
        logger.warning("Detected potential plaintext or legacy encrypted data")
        return value


def check_master_secret(master_secret: str, is_production: bool) -> bool:
    """
    Log a critical warning if the insecure default key is used in production.

    Returns:
        bool: True if the master secret is considered safe for this environment
    """
    if master_secret == INSECURE_DEFAULT_ENCRYPTION_KEY and is_production:
        logger.critical("SECURITY RISK: Using default encryption key in production environment!")
        logger.critical("Set the TOKEN_ENCRYPTION_KEY environment variable to a secure random value")
        return False
    return True
