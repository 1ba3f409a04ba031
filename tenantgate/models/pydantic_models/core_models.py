"""
Pydantic read models returned by the IAM API.

``ApiTokenModel`` never carries the signed credential; it is only shown
once, in ``IssuedTokenModel``, when the token is created.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class OrganisationModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str


class ApiTokenModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organisation_id: UUID
    name: str
    created_at: Optional[datetime] = None


class IssuedTokenModel(ApiTokenModel):
    token: str
