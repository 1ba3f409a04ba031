"""IAM token endpoints and the issuer behind them."""

import pytest
from uuid import UUID, uuid4

from jose import jwt
from sqlalchemy import select

from conftest import (
    TEST_JWT_SECRET,
    TEST_PROXY_SECRET,
    bearer,
    build_config,
    session_jwt,
)
from tenantgate.core.tokens import ConstraintViolation, issue_api_token
from tenantgate.models.tenancy import ApiToken


async def _create(test_client, headers, name="CI Token"):
    return await test_client.post(
        "/api/v1/iam/tokens/", headers=headers, json={"name": name}
    )


# ── issuer ────────────────────────────────────────────────────────────────


async def test_issue_for_unknown_organisation_is_a_constraint_violation(db_session):
    with pytest.raises(ConstraintViolation):
        await issue_api_token(db_session, uuid4(), "Orphan", build_config())

    rows = (await db_session.execute(select(ApiToken))).scalars().all()
    assert rows == []


async def test_issued_credential_claims(db_session, organisation_factory):
    organisation = await organisation_factory()
    token, credential = await issue_api_token(
        db_session, organisation.id, "Test Token", build_config()
    )

    claims = jwt.decode(credential, TEST_JWT_SECRET, algorithms=["HS256"])
    assert claims["jti"] == str(token.id)
    assert claims["sub"] == str(organisation.id)
    assert claims["role"] == "tokenauthed"
    assert claims["iss"] == "tenantgate"
    assert isinstance(claims["iat"], int)
    assert "exp" not in claims


async def test_issued_row_is_stored_before_credential_returned(
    db_session, organisation_factory
):
    organisation = await organisation_factory()
    token, _ = await issue_api_token(
        db_session, organisation.id, "Stored", build_config()
    )
    stored = await db_session.get(ApiToken, token.id)
    assert stored is not None
    assert stored.organisation_id == organisation.id


# ── create / list / delete ────────────────────────────────────────────────


async def test_create_token(seed_member, test_client):
    organisation, _, headers = seed_member
    resp = await _create(test_client, headers)
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "CI Token"
    assert data["organisation_id"] == str(organisation.id)

    claims = jwt.decode(data["token"], TEST_JWT_SECRET, algorithms=["HS256"])
    assert claims["jti"] == data["id"]


async def test_create_token_requires_a_name(seed_member, test_client):
    _, _, headers = seed_member
    resp = await _create(test_client, headers, name="")
    assert resp.status_code == 422


async def test_list_tokens_hides_credentials(seed_member, test_client):
    _, _, headers = seed_member
    await _create(test_client, headers, "One")
    await _create(test_client, headers, "Two")

    resp = await test_client.get("/api/v1/iam/tokens/", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_count"] == 2
    assert {t["name"] for t in data["tokens"]} == {"One", "Two"}
    assert all("token" not in t for t in data["tokens"])


async def test_list_tokens_is_tenant_scoped(
    seed_member, test_client, organisation_factory, employee_factory
):
    _, _, headers_a = seed_member
    await _create(test_client, headers_a, "Mine")

    other = await organisation_factory("Globex")
    other_employee = await employee_factory(other)
    resp = await test_client.get(
        "/api/v1/iam/tokens/", headers=bearer(session_jwt(other_employee.user_id))
    )
    assert resp.status_code == 200
    assert resp.json()["total_count"] == 0


async def test_delete_token_revokes_credential(seed_member, test_client):
    _, _, headers = seed_member
    created = (await _create(test_client, headers)).json()
    token_headers = bearer(created["token"])

    resp = await test_client.get("/api/v1/iam/organisation", headers=token_headers)
    assert resp.status_code == 200

    resp = await test_client.delete(
        f"/api/v1/iam/tokens/{created['id']}", headers=headers
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Token deleted successfully",
        "errors": None,
    }

    resp = await test_client.get("/api/v1/iam/organisation", headers=token_headers)
    assert resp.status_code == 401


async def test_delete_unknown_token_returns_404(seed_member, test_client):
    _, _, headers = seed_member
    resp = await test_client.delete(f"/api/v1/iam/tokens/{uuid4()}", headers=headers)
    assert resp.status_code == 404


async def test_cannot_delete_another_tenants_token(
    seed_member, test_client, organisation_factory, employee_factory, db_session
):
    _, _, headers_a = seed_member
    created = (await _create(test_client, headers_a)).json()

    other = await organisation_factory("Globex")
    other_employee = await employee_factory(other)
    resp = await test_client.delete(
        f"/api/v1/iam/tokens/{created['id']}",
        headers=bearer(session_jwt(other_employee.user_id)),
    )
    assert resp.status_code == 404
    assert await db_session.get(ApiToken, UUID(created["id"])) is not None


# ── who may manage tokens ─────────────────────────────────────────────────


async def test_token_caller_cannot_mint_tokens(seed_member, test_client):
    _, _, headers = seed_member
    created = (await _create(test_client, headers)).json()

    resp = await _create(test_client, bearer(created["token"]), "Escalation")
    assert resp.status_code == 403


async def test_token_caller_can_list_own_tokens(seed_member, test_client):
    _, _, headers = seed_member
    created = (await _create(test_client, headers)).json()

    resp = await test_client.get(
        "/api/v1/iam/tokens/", headers=bearer(created["token"])
    )
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tokens"]] == [created["id"]]


async def test_session_without_employee_is_forbidden(db_session, test_client):
    headers = bearer(session_jwt(uuid4()))
    resp = await _create(test_client, headers)
    assert resp.status_code == 403

    resp = await test_client.get("/api/v1/iam/organisation", headers=headers)
    assert resp.status_code == 403


async def test_missing_credential_is_unauthorized(db_session, test_client):
    resp = await test_client.get("/api/v1/iam/tokens/")
    assert resp.status_code == 401


async def test_get_organisation(seed_member, test_client):
    organisation, _, headers = seed_member
    resp = await test_client.get("/api/v1/iam/organisation", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"id": str(organisation.id), "name": "Acme"}


# ── proxy secret ──────────────────────────────────────────────────────────


async def test_token_caller_needs_proxy_secret_when_configured(
    seed_member, client_factory, db_session
):
    _, _, headers = seed_member
    config = build_config(proxy_secret=TEST_PROXY_SECRET)

    async with client_factory(config, db_session=db_session) as client:
        created = (await _create(client, headers)).json()
        token_headers = bearer(created["token"])

        resp = await client.get("/api/v1/iam/organisation", headers=token_headers)
        assert resp.status_code == 401

        resp = await client.get(
            "/api/v1/iam/organisation",
            headers={**token_headers, "x-proxy-secret": "wrong"},
        )
        assert resp.status_code == 401

        resp = await client.get(
            "/api/v1/iam/organisation",
            headers={**token_headers, "x-proxy-secret": TEST_PROXY_SECRET},
        )
        assert resp.status_code == 200
