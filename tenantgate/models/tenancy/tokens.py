"""
API token record.

Only the reference id is stored; the credential handed out is a signed
JWT carrying that id. Deleting the row revokes every credential that
points at it.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tenantgate.db.base import Base
import uuid


class ApiToken(Base):
    __tablename__ = "api_token"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        nullable=False,
        default=uuid.uuid4,
    )
    organisation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String, nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    organisation = relationship("Organisation", back_populates="api_tokens")
