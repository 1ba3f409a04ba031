from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship
from tenantgate.db.base import Base
import uuid


class Contact(Base):
    __tablename__ = "contact"

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
    full_name = Column(String, nullable=True)

    organisation = relationship("Organisation", back_populates="contacts")
