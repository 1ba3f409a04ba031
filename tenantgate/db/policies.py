"""
Database-resident tenancy rules.

Statement lists applied by the Alembic migrations after the tables exist.
They are kept here, rather than inline in the revisions, so the Postgres
test suite can install exactly the same rules on a scratch database.

PostgREST hands the verified JWT claims to Postgres as the
``request.jwt.claims`` setting and the request headers as
``request.headers``; everything below reads those. Configure PostgREST with
``db-pre-request = "private.check_request"`` and set
``app.settings.jwt_secret`` (and optionally ``app.settings.proxy_secret``)
on the database.
"""

TOKEN_ROLE = "tokenauthed"
# Lower-case: PostgREST exposes request.headers with lower-cased names
PROXY_SECRET_HEADER = "x-proxy-secret"
API_ROLES = ("anon", "authenticated", "service_role", TOKEN_ROLE)
TENANT_TABLES = ("organisation", "employee", "contact")


def _create_roles() -> str:
    checks = "\n".join(
        f"  IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{role}') THEN\n"
        f"    CREATE ROLE {role} NOLOGIN;\n"
        f"  END IF;"
        for role in API_ROLES
    )
    return f"DO $$\nBEGIN\n{checks}\nEND\n$$"


_ROLE_LIST = ", ".join(API_ROLES)
_ROLE_LITERALS = ", ".join(f"'{role}'" for role in API_ROLES)

# ── 0001: organisations, employees, contacts ─────────────────────────────

CLAIMS_FUNCTION = """
create or replace function private.jwt_claims() returns jsonb as
$$
select coalesce(nullif(current_setting('request.jwt.claims', true), ''), '{}')::jsonb
$$ language sql stable
"""

SESSION_ORGANISATION_ID_FUNCTION = """
create or replace function private.organisation_id() returns uuid as
$$
select organisation_id
from public.employee
where user_id::text = private.jwt_claims() ->> 'sub'
$$ language sql stable security definer set search_path = public
"""

TENANCY_UPGRADE = [
    _create_roles(),
    "create schema if not exists private",
    f"grant usage on schema private to {_ROLE_LIST}",
    CLAIMS_FUNCTION,
    SESSION_ORGANISATION_ID_FUNCTION,
    # ids and tenant defaults; inserts through the api view land in the caller's tenant
    "alter table organisation alter column id set default gen_random_uuid()",
    "alter table employee alter column id set default gen_random_uuid()",
    "alter table employee alter column organisation_id set default private.organisation_id()",
    "alter table contact alter column id set default gen_random_uuid()",
    "alter table contact alter column organisation_id set default private.organisation_id()",
    # employees vanish with their session identity when the identity provider's schema exists
    """
    DO $$
    BEGIN
      IF to_regclass('auth.users') IS NOT NULL THEN
        ALTER TABLE employee
          ADD CONSTRAINT employee_user_id_fkey FOREIGN KEY (user_id)
          REFERENCES auth.users (id) ON UPDATE RESTRICT ON DELETE CASCADE;
      END IF;
    END
    $$
    """,
    "alter table organisation enable row level security",
    "alter table employee enable row level security",
    "alter table contact enable row level security",
    """
    create policy organisation_tenant on organisation to authenticated using (
        (select private.organisation_id()) = id
    )
    """,
    """
    create policy employee_tenant on employee to authenticated using (
        (select private.organisation_id()) = organisation_id
    )
    """,
    """
    create policy contact_tenant on contact to authenticated using (
        (select private.organisation_id()) = organisation_id
    )
    """,
    f"grant select, insert, update, delete on organisation, employee, contact to {_ROLE_LIST}",
    # public projection: id + full_name only
    "create schema if not exists api",
    f"grant usage on schema api to {_ROLE_LIST}",
    """
    create view api.contact with (security_invoker = true) as
    select id, full_name
    from public.contact
    where organisation_id = private.organisation_id()
    """,
    f"grant select, insert, update, delete on api.contact to authenticated, {TOKEN_ROLE}",
]

TENANCY_DOWNGRADE = [
    "drop view if exists api.contact",
    "drop schema if exists api",
    "drop policy if exists contact_tenant on contact",
    "drop policy if exists employee_tenant on employee",
    "drop policy if exists organisation_tenant on organisation",
    "alter table employee alter column organisation_id drop default",
    "alter table contact alter column organisation_id drop default",
    "drop function if exists private.organisation_id()",
    "drop function if exists private.jwt_claims()",
    "drop schema if exists private",
]

# ── 0002: API tokens ─────────────────────────────────────────────────────

TOKEN_AWARE_ORGANISATION_ID_FUNCTION = f"""
create or replace function private.organisation_id() returns uuid as
$$
select case
    when private.jwt_claims() ->> 'role' = '{TOKEN_ROLE}'
        then nullif(private.jwt_claims() ->> 'sub', '')::uuid
    else (
        select organisation_id
        from public.employee
        where user_id::text = private.jwt_claims() ->> 'sub'
    )
end
$$ language sql stable security definer set search_path = public
"""

BASE64URL_FUNCTION = """
create or replace function private.base64url(data bytea) returns text as
$$
select translate(encode(data, 'base64'), E'+/=\\n', '-_')
$$ language sql immutable
"""

SIGN_JWT_FUNCTION = """
create or replace function private.sign_jwt(payload json, secret text) returns text as
$$
declare
    signable text;
    signed text;
begin
    -- pgjwt frames the token when installed
    if to_regprocedure('sign(json, text, text)') is not null then
        execute 'select sign($1, $2, $3)' into signed using payload, secret, 'HS256';
        return signed;
    end if;

    signable := private.base64url(convert_to('{"alg":"HS256","typ":"JWT"}', 'utf8'))
        || '.'
        || private.base64url(convert_to(payload::text, 'utf8'));
    return signable || '.' || private.base64url(hmac(signable, secret, 'sha256'));
end;
$$ language plpgsql stable set search_path = public, extensions
"""

CREATE_API_TOKEN_FUNCTION = f"""
create or replace function public.create_api_token(organisation_id uuid, name text)
returns text as
$$
declare
    -- SET ROLE value; security definer leaves it alone. 'none' means no role switch
    invoking_role text := current_setting('role');
    new_token_id uuid;
begin
    if not (
        invoking_role = 'service_role'
        or (invoking_role = 'none' and session_user::text <> all (array[{_ROLE_LITERALS}]))
    )
        and create_api_token.organisation_id is distinct from private.organisation_id() then
        raise sqlstate '42501' using message = 'not allowed to issue tokens for this organisation';
    end if;

    insert into public.api_token (organisation_id, name)
    values (create_api_token.organisation_id, create_api_token.name)
    returning id into new_token_id;

    return private.sign_jwt(
        json_build_object(
            'jti', new_token_id,
            'iss', coalesce(nullif(current_setting('app.settings.jwt_issuer', true), ''), 'tenantgate'),
            'sub', create_api_token.organisation_id,
            'role', '{TOKEN_ROLE}',
            'iat', extract(epoch from now())::bigint
        ),
        current_setting('app.settings.jwt_secret')
    );
end;
$$ language plpgsql volatile security definer set search_path = public, extensions
"""

CHECK_REQUEST_FUNCTION = f"""
create or replace function private.check_request() returns void as
$$
declare
    claims jsonb := private.jwt_claims();
    expected_secret text := nullif(current_setting('app.settings.proxy_secret', true), '');
    carried_secret text := (
        coalesce(nullif(current_setting('request.headers', true), ''), '{{}}')::json
    ) ->> '{PROXY_SECRET_HEADER}';
begin
    if claims ->> 'role' is distinct from '{TOKEN_ROLE}' then
        return;
    end if;

    if expected_secret is not null and carried_secret is distinct from expected_secret then
        raise sqlstate 'PT401' using message = 'Unauthorized';
    end if;

    if not exists (select 1 from public.api_token where id::text = claims ->> 'jti') then
        raise sqlstate 'PT401' using message = 'Unauthorized';
    end if;
end;
$$ language plpgsql stable security definer set search_path = public
"""

API_TOKEN_UPGRADE = [
    "create extension if not exists pgcrypto",
    """
    DO $$
    BEGIN
      IF EXISTS (SELECT 1 FROM pg_available_extensions WHERE name = 'pgjwt') THEN
        CREATE EXTENSION IF NOT EXISTS pgjwt;
      END IF;
    END
    $$
    """,
    "alter table api_token alter column id set default gen_random_uuid()",
    TOKEN_AWARE_ORGANISATION_ID_FUNCTION,
    "alter table api_token enable row level security",
    f"""
    create policy api_token_tenant on api_token to authenticated, {TOKEN_ROLE} using (
        (select private.organisation_id()) = organisation_id
    )
    """,
    f"alter policy organisation_tenant on organisation to authenticated, {TOKEN_ROLE}",
    f"alter policy employee_tenant on employee to authenticated, {TOKEN_ROLE}",
    f"alter policy contact_tenant on contact to authenticated, {TOKEN_ROLE}",
    "grant select, delete on api_token to authenticated",
    f"grant select on api_token to {TOKEN_ROLE}",
    BASE64URL_FUNCTION,
    SIGN_JWT_FUNCTION,
    CREATE_API_TOKEN_FUNCTION,
    "revoke execute on function public.create_api_token(uuid, text) from public",
    "grant execute on function public.create_api_token(uuid, text) to authenticated, service_role",
    CHECK_REQUEST_FUNCTION,
    f"grant execute on function private.check_request() to {_ROLE_LIST}",
]

API_TOKEN_DOWNGRADE = [
    "drop function if exists private.check_request()",
    "drop function if exists public.create_api_token(uuid, text)",
    "drop function if exists private.sign_jwt(json, text)",
    "drop function if exists private.base64url(bytea)",
    "alter policy contact_tenant on contact to authenticated",
    "alter policy employee_tenant on employee to authenticated",
    "alter policy organisation_tenant on organisation to authenticated",
    "drop policy if exists api_token_tenant on api_token",
    SESSION_ORGANISATION_ID_FUNCTION,
]
