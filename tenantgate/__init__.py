"""
tenantgate - public API edge for a multi-tenant Postgres store.

The edge proxy verifies a bearer credential, restricts which resources can
be addressed and forwards everything else untouched to the PostgREST layer.
Tenancy itself (row visibility, token revocation) is enforced in the
database; the Python renditions in ``tenantgate.core`` back the IAM API.

Data model: Organisation, Employee, Contact, ApiToken. Everything is scoped
by organisation_id.
"""
