"""
Organisation model - the tenant isolation boundary.

Every other tenancy table hangs off an organisation and is removed with it.
"""

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship
from tenantgate.db.base import Base
import uuid


class Organisation(Base):
    __tablename__ = "organisation"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        nullable=False,
        default=uuid.uuid4,
    )
    name = Column(String, unique=True, nullable=False)

    employees = relationship(
        "Employee",
        back_populates="organisation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    contacts = relationship(
        "Contact",
        back_populates="organisation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    api_tokens = relationship(
        "ApiToken",
        back_populates="organisation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
