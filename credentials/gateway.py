"""
Persistence Gateway
===================

Storage interface used by CredentialStore, plus the SQLAlchemy implementation
backed by the ``twitter_auth`` table.

The gateway only ever sees ciphertext. Each method is one state transition of
an AgentCredential record and commits (or rolls back) its own transaction, so
no caller can perform a partial update that skips an invalidation.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import AgentCredential
from credentials.errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass
class StoredPermanentPair:
    encrypted_access_token: str
    encrypted_access_secret: str
    external_user_id: Optional[str] = None
    external_handle: Optional[str] = None


@dataclass
class StoredCredentialSummary:
    """Non-secret view of a record."""
    agent_id: str
    has_temporary_pair: bool
    has_permanent_pair: bool
    external_user_id: Optional[str] = None
    external_handle: Optional[str] = None


class PersistenceGateway(ABC):
    """Durable storage for AgentCredential records."""

    @abstractmethod
    def begin_temporary(self, agent_id: str, request_token: str, encrypted_secret: str) -> Optional[str]:
        """
        Start a handshake for ``agent_id``.

        Creates the record if absent. An existing record gets the new temporary
        pair and loses its permanent pair and external identity.

        Returns:
            Optional[str]: The request token this replaced, if any
        """

    @abstractmethod
    def find_temporary_secret(self, request_token: str) -> Optional[str]:
        """Return the encrypted secret stored for ``request_token``."""

    @abstractmethod
    def complete_handshake(
        self,
        agent_id: str,
        encrypted_access_token: str,
        encrypted_access_secret: str,
        external_user_id: str,
        external_handle: str,
        expected_request_token: Optional[str] = None,
    ) -> Optional[str]:
        """
        Set the permanent pair and clear the temporary pair in one write.

        When ``expected_request_token`` is given the write only happens if it
        is still the record's temporary request token.

        Returns:
            Optional[str]: The cleared request token, or None if nothing was
            written (no record, or the expected token no longer matches)
        """

    @abstractmethod
    def clear_temporary(self, agent_id: str) -> Optional[str]:
        """Null the temporary pair. Returns the cleared request token, if any."""

    @abstractmethod
    def get_permanent(self, agent_id: str) -> Optional[StoredPermanentPair]:
        """Return the encrypted permanent pair, or None if not connected."""

    @abstractmethod
    def get_summary(self, agent_id: str) -> Optional[StoredCredentialSummary]:
        """Return a non-secret summary of the record, or None if absent."""

    @abstractmethod
    def delete(self, agent_id: str) -> Optional[str]:
        """
        Remove the record.

        Returns:
            Optional[str]: The temporary request token the record held, if any
        """


class SQLAlchemyPersistenceGateway(PersistenceGateway):
    """PersistenceGateway over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def _get_for_update(self, agent_id: str) -> Optional[AgentCredential]:
        return (
            self.db.query(AgentCredential)
            .filter(AgentCredential.agent_id == agent_id)
            .with_for_update()
            .first()
        )

    def _fail(self, operation: str, error: SQLAlchemyError):
        self.db.rollback()
        logger.error(f"Database error during {operation}: {str(error)}")
        raise PersistenceError(cause=error)

    def begin_temporary(self, agent_id, request_token, encrypted_secret):
        try:
            record = self._get_for_update(agent_id)
            replaced_token = None

            if record is None:
                record = AgentCredential(agent_id=agent_id)
                self.db.add(record)
            else:
                replaced_token = record.temporary_request_token
                # Re-authentication invalidates the previous session
                record.permanent_access_token = None
                record.permanent_access_secret = None
                record.external_user_id = None
                record.external_handle = None

            record.temporary_request_token = request_token
            record.temporary_request_secret = encrypted_secret
            self.db.commit()
            return replaced_token
        except SQLAlchemyError as e:
            self._fail("begin_temporary", e)

    def find_temporary_secret(self, request_token):
        try:
            record = self.db.query(AgentCredential).filter(
                AgentCredential.temporary_request_token == request_token
            ).first()
        except SQLAlchemyError as e:
            self._fail("find_temporary_secret", e)

        if record is None:
            return None
        return record.temporary_request_secret

    def complete_handshake(
        self,
        agent_id,
        encrypted_access_token,
        encrypted_access_secret,
        external_user_id,
        external_handle,
        expected_request_token=None,
    ):
        try:
            record = self._get_for_update(agent_id)
            if record is None or not record.temporary_request_token:
                self.db.rollback()
                return None
            if expected_request_token is not None and record.temporary_request_token != expected_request_token:
                self.db.rollback()
                return None

            cleared_token = record.temporary_request_token
            record.permanent_access_token = encrypted_access_token
            record.permanent_access_secret = encrypted_access_secret
            record.external_user_id = external_user_id
            record.external_handle = external_handle
            record.temporary_request_token = None
            record.temporary_request_secret = None
            self.db.commit()
            return cleared_token
        except SQLAlchemyError as e:
            self._fail("complete_handshake", e)

    def clear_temporary(self, agent_id):
        try:
            record = self._get_for_update(agent_id)
            if record is None:
                self.db.rollback()
                return None

            cleared_token = record.temporary_request_token
            record.temporary_request_token = None
            record.temporary_request_secret = None
            self.db.commit()
            return cleared_token
        except SQLAlchemyError as e:
            self._fail("clear_temporary", e)

    def get_permanent(self, agent_id):
        try:
            record = self.db.query(AgentCredential).filter(
                AgentCredential.agent_id == agent_id
            ).first()
        except SQLAlchemyError as e:
            self._fail("get_permanent", e)

        if record is None or not record.has_permanent_pair:
            return None
        return StoredPermanentPair(
            encrypted_access_token=record.permanent_access_token,
            encrypted_access_secret=record.permanent_access_secret,
            external_user_id=record.external_user_id,
            external_handle=record.external_handle,
        )

    def get_summary(self, agent_id):
        try:
            record = self.db.query(AgentCredential).filter(
                AgentCredential.agent_id == agent_id
            ).first()
        except SQLAlchemyError as e:
            self._fail("get_summary", e)

        if record is None:
            return None
        return StoredCredentialSummary(
            agent_id=record.agent_id,
            has_temporary_pair=record.has_temporary_pair,
            has_permanent_pair=record.has_permanent_pair,
            external_user_id=record.external_user_id,
            external_handle=record.external_handle,
        )

    def delete(self, agent_id):
        try:
            record = self._get_for_update(agent_id)
            if record is None:
                self.db.rollback()
                return None

            temporary_token = record.temporary_request_token
            self.db.delete(record)
            self.db.commit()
            return temporary_token
        except SQLAlchemyError as e:
            self._fail("delete", e)
