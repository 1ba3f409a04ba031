"""
Employee model - links a session identity to exactly one organisation.

In the database ``user_id`` also references ``auth.users`` (on delete
cascade); that schema belongs to the identity provider, so the constraint
is added by the migration rather than declared here.
"""

from sqlalchemy import Column, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from tenantgate.db.base import Base
import uuid


class Employee(Base):
    __tablename__ = "employee"

    id = Column(
        Uuid(as_uuid=True),
        primary_key=True,
        nullable=False,
        default=uuid.uuid4,
    )
    organisation_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organisation.id", onupdate="RESTRICT", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Uuid(as_uuid=True), unique=True, nullable=True)

    organisation = relationship("Organisation", back_populates="employees")
