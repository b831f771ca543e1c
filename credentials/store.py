"""
Credential Store
================

Single source of truth for agent credentials. CredentialStore encrypts every
secret before it reaches the PersistenceGateway and decrypts it on the way
out, so callers only ever handle plaintext. It also keeps the
TemporaryTokenCache in step with durable storage.

Failure semantics:
- Encryption failures abort the write and propagate.
- Decryption failures on read are logged and reported as absent, so one
  corrupted record does not block unrelated operations.
- Storage failures surface as PersistenceError.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from credentials.cipher import SecretCipher
from credentials.errors import DecryptionFailure, ExpiredSessionError
from credentials.gateway import PersistenceGateway, StoredCredentialSummary
from credentials.token_cache import TemporaryTokenCache

logger = logging.getLogger(__name__)


def mask_token(token: Optional[str]) -> str:
    """Shorten a token for log output."""
    if not token:
        return "<none>"
    return f"{token[:5]}..."


@dataclass
class PermanentCredentials:
    access_token: str
    access_secret: str
    external_user_id: Optional[str] = None
    external_handle: Optional[str] = None


class CredentialStore:
    """Reads and writes AgentCredential records through a PersistenceGateway."""

    def __init__(self, gateway: PersistenceGateway, cipher: SecretCipher, cache: TemporaryTokenCache):
        self.gateway = gateway
        self.cipher = cipher
        self.cache = cache

    def save_temporary(self, agent_id: str, request_token: str, request_secret: str) -> None:
        """
        Record the request token pair of a new handshake.

        This is the only way to start a handshake: an existing record has its
        permanent pair and external identity cleared in the same write, since
        re-authentication invalidates the previous session. Any request token
        it replaces is evicted from the cache.

        Raises:
            EncryptionFailure: If the secret cannot be encrypted
            PersistenceError: If the write fails
        """
        encrypted_secret = self.cipher.encrypt(request_secret)
        replaced_token = self.gateway.begin_temporary(agent_id, request_token, encrypted_secret)

        if replaced_token and replaced_token != request_token:
            self.cache.remove(replaced_token)
        self.cache.put(request_token, request_secret)

        logger.info(f"Saved temp secret for agent: {agent_id}, token: {mask_token(request_token)}")

    def get_temporary_secret(self, request_token: str) -> Optional[str]:
        """
        Look up the secret for an in-flight request token.

        Checks the cache first and falls back to durable storage, repopulating
        the cache on a hit there.

        Returns:
            Optional[str]: The plaintext secret, or None if unknown or unreadable
        """
        cached = self.cache.get(request_token)
        if cached is not None:
            logger.debug("Retrieved temp secret from cache")
            return cached

        encrypted_secret = self.gateway.find_temporary_secret(request_token)
        if not encrypted_secret:
            logger.warning(f"Temp secret not found for token: {mask_token(request_token)}")
            return None

        try:
            secret = self.cipher.decrypt(encrypted_secret)
        except DecryptionFailure:
            logger.error(f"Failed to decrypt temporary secret for token: {mask_token(request_token)}")
            return None

        self.cache.put(request_token, secret)
        return secret

    def save_permanent(
        self,
        agent_id: str,
        access_token: str,
        access_secret: str,
        external_user_id: str,
        external_handle: str,
        request_token: Optional[str] = None,
    ) -> None:
        """
        Store the permanent pair and clear the temporary pair atomically.

        Args:
            request_token: When given, the write only happens if this is still
                the agent's in-flight request token

        Raises:
            ExpiredSessionError: If there is no in-flight handshake to complete
            EncryptionFailure: If a secret cannot be encrypted
            PersistenceError: If the write fails
        """
        encrypted_access_token = self.cipher.encrypt(access_token)
        encrypted_access_secret = self.cipher.encrypt(access_secret)

        cleared_token = self.gateway.complete_handshake(
            agent_id,
            encrypted_access_token,
            encrypted_access_secret,
            external_user_id,
            external_handle,
            expected_request_token=request_token,
        )
        if cleared_token is None:
            if request_token:
                self.cache.remove(request_token)
            logger.warning(f"No in-flight handshake to complete for agent: {agent_id}")
            raise ExpiredSessionError()

        self.cache.remove(cleared_token)
        logger.info(f"Tokens securely stored for agent {agent_id}, Twitter account @{external_handle}")

    def clear_temporary(self, agent_id: str) -> None:
        """Clear the temporary pair. A missing record or pair is not an error."""
        logger.debug(f"Clearing temp tokens for agent: {agent_id} (if record exists)")
        cleared_token = self.gateway.clear_temporary(agent_id)
        if cleared_token:
            self.cache.remove(cleared_token)

    def get_permanent(self, agent_id: str) -> Optional[PermanentCredentials]:
        """
        Return the decrypted permanent pair.

        Returns:
            Optional[PermanentCredentials]: None if the agent was never
            connected or the stored pair cannot be decrypted
        """
        stored = self.gateway.get_permanent(agent_id)
        if stored is None:
            logger.debug(f"Permanent tokens not found for agent: {agent_id}")
            return None

        try:
            return PermanentCredentials(
                access_token=self.cipher.decrypt(stored.encrypted_access_token),
                access_secret=self.cipher.decrypt(stored.encrypted_access_secret),
                external_user_id=stored.external_user_id,
                external_handle=stored.external_handle,
            )
        except DecryptionFailure:
            logger.error(f"Failed to decrypt tokens for agent {agent_id}")
            return None

    def get_summary(self, agent_id: str) -> Optional[StoredCredentialSummary]:
        return self.gateway.get_summary(agent_id)

    def delete(self, agent_id: str) -> None:
        """Remove the agent's record entirely. A missing record is not an error."""
        logger.info(f"Deleting all tokens for agent: {agent_id}")
        temporary_token = self.gateway.delete(agent_id)
        if temporary_token:
            self.cache.remove(temporary_token)
