"""
Caller identity.

A verified claim set is turned into exactly one of three caller kinds.
Everything that authorizes (tenant resolution, the token validator)
dispatches on the kind instead of re-reading raw claims.
"""

from dataclasses import dataclass, field
from typing import Any, Union
from uuid import UUID

from tenantgate.api.v1.helpers.responses import unauthorized_response
from tenantgate.db.policies import TOKEN_ROLE

ANON_ROLE = "anon"


@dataclass(frozen=True)
class SessionCaller:
    """A human signed in through the identity provider."""

    user_id: UUID
    claims: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class TokenCaller:
    """A long-lived API token acting for an organisation."""

    token_id: UUID
    organisation_id: UUID
    claims: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class AnonymousCaller:
    claims: dict[str, Any] = field(default_factory=dict, compare=False)


CallerIdentity = Union[SessionCaller, TokenCaller, AnonymousCaller]


def _as_uuid(value: Any) -> UUID:
    return UUID(str(value))


def caller_from_claims(claims: dict[str, Any]) -> CallerIdentity:
    """Classify already-verified claims. Malformed claims are a 401."""
    role = claims.get("role")

    if role == TOKEN_ROLE:
        try:
            return TokenCaller(
                token_id=_as_uuid(claims["jti"]),
                organisation_id=_as_uuid(claims["sub"]),
                claims=claims,
            )
        except (KeyError, ValueError):
            raise unauthorized_response("Malformed API token")

    subject = claims.get("sub")
    if role == ANON_ROLE or not subject:
        return AnonymousCaller(claims=claims)

    try:
        return SessionCaller(user_id=_as_uuid(subject), claims=claims)
    except ValueError:
        raise unauthorized_response("Malformed session token")
