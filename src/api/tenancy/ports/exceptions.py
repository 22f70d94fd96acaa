"""Exceptions for the tenancy bounded context.

These represent the failure taxonomy shared by the registry, provisioner,
connection router, resolver and orchestrator. Logical errors (duplicates,
conflicts, not-found) are never retried; ``ConnectionUnavailableError`` is.
"""

from __future__ import annotations


class TenancyError(Exception):
    """Base class for tenancy failures."""

    pass


class DuplicateIdentityError(TenancyError):
    """Raised when a tenant id or contact email is already registered.

    Uniqueness is enforced by the registry's storage constraints, so two
    concurrent registrations cannot both succeed.
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class BindingConflictError(TenancyError):
    """Raised when a binding key is already bound to a different tenant."""

    def __init__(self, binding_key: str, existing_tenant_id: str | None = None):
        super().__init__(f"Binding key '{binding_key}' is already in use")
        self.binding_key = binding_key
        self.existing_tenant_id = existing_tenant_id


class TenantNotFoundError(TenancyError):
    """Raised when a tenant or binding does not exist (HTTP 404).

    Also raised by the resolver for tenants that exist but are not
    routable yet (``provisioning``) or anymore (``suspended``/``deleted``).
    """

    def __init__(self, key: str):
        super().__init__(f"Tenant not found: {key}")
        self.key = key


class AmbiguousRequestError(TenancyError):
    """Raised when a request carries no identifiable tenant segment or subdomain."""

    pass


class ProvisioningFailedError(TenancyError):
    """Raised when a database could not be created, or a provisioning run failed.

    Attributes:
        reason: Primary failure description (never a rollback failure).
        step: Provisioning step that failed (register, bind, create_database,
            migrate, seed_admin, mark_active).
        tenant_id: Tenant being provisioned, when known.
        physical_name: Physical database name, when known.
        rollback_warnings: Compensating actions that themselves failed.
    """

    def __init__(
        self,
        reason: str,
        *,
        step: str | None = None,
        tenant_id: str | None = None,
        physical_name: str | None = None,
        rollback_warnings: list[str] | None = None,
    ):
        super().__init__(reason)
        self.reason = reason
        self.step = step
        self.tenant_id = tenant_id
        self.physical_name = physical_name
        self.rollback_warnings = list(rollback_warnings or [])


class MigrationFailedError(TenancyError):
    """Raised when a migration step fails against a tenant database.

    Partial migration state is left as-is; the caller decides whether to
    retry ``migrate`` or drop and recreate.

    Attributes:
        step: Revision identifier of the failing step.
        cause: Underlying exception.
    """

    def __init__(self, step: str, cause: BaseException, database: str | None = None):
        super().__init__(f"Migration step '{step}' failed: {cause}")
        self.step = step
        self.cause = cause
        self.database = database


class ConnectionUnavailableError(TenancyError):
    """Raised when the pool cannot produce a connection. Retryable."""

    def __init__(self, database: str, cause: BaseException | None = None):
        super().__init__(f"No connection available for database '{database}'")
        self.database = database
        self.cause = cause


class UnresolvedTenantError(TenancyError):
    """Raised when a tenant's physical database does not exist.

    The tenant must be provisioned before any scope can be opened.
    """

    def __init__(self, tenant_id: str, physical_name: str):
        super().__init__(
            f"Physical database '{physical_name}' for tenant "
            f"'{tenant_id}' does not exist"
        )
        self.tenant_id = tenant_id
        self.physical_name = physical_name


class AlreadyProvisioningError(TenancyError):
    """Raised when another run currently holds the provisioning lock for a tenant id."""

    def __init__(self, tenant_id: str):
        super().__init__(f"Tenant '{tenant_id}' is already being provisioned")
        self.tenant_id = tenant_id
