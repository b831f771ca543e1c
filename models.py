from sqlalchemy import Column, String, DateTime
from datetime import datetime

from database import Base


class AgentCredential(Base):
    """
    Twitter credentials held on behalf of one agent.

    The temporary pair only exists while an authorization handshake is in
    flight; the permanent pair and the external identity are written together
    once the handshake completes. Secrets (and the permanent access token) are
    stored encrypted and must only be read through CredentialStore.
    """
    __tablename__ = "twitter_auth"

    agent_id = Column(String, primary_key=True)

    # In-flight handshake
    temporary_request_token = Column(String, nullable=True, unique=True, index=True)
    temporary_request_secret = Column(String, nullable=True)  # encrypted

    # Connected account
    permanent_access_token = Column(String, nullable=True)  # encrypted
    permanent_access_secret = Column(String, nullable=True)  # encrypted
    external_user_id = Column(String, nullable=True)
    external_handle = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_temporary_pair(self) -> bool:
        return bool(self.temporary_request_token and self.temporary_request_secret)

    @property
    def has_permanent_pair(self) -> bool:
        return bool(self.permanent_access_token and self.permanent_access_secret)
