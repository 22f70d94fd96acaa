"""Provisioning orchestrator for the tenancy bounded context.

Runs the tenant creation saga:

    STARTED -> TENANT_RECORDED -> DOMAIN_BOUND -> DATABASE_CREATED
            -> MIGRATED -> SEEDED_ADMIN -> ACTIVE

The saga spans the central registry and a separately created physical
database, so it cannot be one transaction. Each registry step commits on
its own and every completed step has an explicit compensating action:

    failed step        compensation
    -----------        ------------
    register           none
    bind               remove tenant record (bindings cascade)
    create_database    drop database if it appeared, remove tenant record
    migrate and later  release pooled connections, drop database,
                       remove tenant record

Compensation is best-effort. Its failures are reported as warnings on the
primary error, never in place of it. When the database cannot be dropped
the tenant record is kept, so the id stays claimed until a retry resumes
the run or the tenant is deprovisioned.

A run holds the provisioning lock for its tenant id. A database that
exists without a tenant record is never adopted. Re-running after a
crash resumes: every step first checks whether its effect is already in
place (record present, key bound to this tenant, database exists, schema
at head, admin email present) and skips it if so.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Awaitable, Callable, Iterable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.retry import is_transient_error, retry_transient
from infrastructure.settings import AdminSeedPolicy, ProvisioningSettings
from tenancy.application.observability import (
    DefaultProvisioningProbe,
    ProvisioningProbe,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import ReservedBindingKeyError
from tenancy.domain.value_objects import (
    AdminPrincipal,
    BindingKey,
    PhysicalDatabaseName,
    ProvisioningState,
    TenantId,
    TenantStatus,
)
from tenancy.ports.exceptions import (
    AlreadyProvisioningError,
    BindingConflictError,
    ConnectionUnavailableError,
    DuplicateIdentityError,
    ProvisioningFailedError,
    TenancyError,
)
from tenancy.ports.provisioning import (
    IAdminSeeder,
    IConnectionRouter,
    IDatabaseProvisioner,
    IProvisioningLock,
)
from tenancy.ports.repositories import ITenantRegistry

T = TypeVar("T")

# Reported as the unreachable database when the central registry or the
# admin connection used for locking cannot be reached
CENTRAL_DATABASE = "central"

# Upper bound on ``_1, _2, ...`` suffixes tried for a derived tenant id
MAX_SUFFIX_ATTEMPTS = 20

# Surfaced unchanged after rollback; never wrapped in ProvisioningFailedError
_LOGICAL_ERRORS = (
    DuplicateIdentityError,
    BindingConflictError,
    AlreadyProvisioningError,
)


class ProvisioningStep(StrEnum):
    """Actions of the saga, named for operators reading failures."""

    REGISTER = "register"
    BIND = "bind"
    CREATE_DATABASE = "create_database"
    MIGRATE = "migrate"
    SEED_ADMIN = "seed_admin"
    MARK_ACTIVE = "mark_active"


@dataclass(frozen=True)
class ProvisioningRequest:
    """Input for one provisioning run.

    Attributes:
        company_name: Tenant display name
        company_email: Tenant contact email (globally unique)
        domain: Binding key requested for the tenant
        admin: First administrator; required unless the seed policy says
            otherwise
        tenant_id: Explicit id. When omitted the id is derived from
            ``domain`` and suffixed on collision with another tenant.
    """

    company_name: str
    company_email: str
    domain: str
    admin: AdminPrincipal | None = None
    tenant_id: TenantId | None = None


@dataclass(frozen=True)
class ProvisioningResult:
    """Outcome of a successful run."""

    tenant: Tenant
    binding_key: BindingKey
    physical_name: PhysicalDatabaseName
    schema_revision: str | None
    admin_seeded: bool
    resumed: bool
    state: ProvisioningState = ProvisioningState.ACTIVE


@dataclass
class _Run:
    """Mutable progress of one run; drives compensation."""

    tenant: Tenant
    binding_key: BindingKey
    physical_name: PhysicalDatabaseName
    resumed: bool
    state: ProvisioningState = ProvisioningState.STARTED
    tenant_recorded: bool = False
    database_touched: bool = False
    admin_seeded: bool = False
    warnings: list[str] = field(default_factory=list)


class ProvisioningOrchestrator:
    """Application service running the provisioning saga for one request.

    Holds a central database session; construct one per request.
    """

    def __init__(
        self,
        registry: ITenantRegistry,
        session: AsyncSession,
        provisioner: IDatabaseProvisioner,
        router: IConnectionRouter,
        lock: IProvisioningLock,
        seeder: IAdminSeeder,
        settings: ProvisioningSettings,
        probe: ProvisioningProbe | None = None,
        reserved_labels: Iterable[str] = (),
    ):
        """Initialize the orchestrator.

        Args:
            registry: Tenant registry bound to ``session``
            session: Central database session; every registry step runs
                in its own ``session.begin()`` block
            provisioner: Creates, migrates and drops tenant databases
            router: Opens the tenant-bound scope used to seed the admin
            lock: Mutual exclusion per tenant id
            seeder: Writes the admin principal
            settings: Seed policy, timeouts and retry bounds
            probe: Optional domain probe for observability
            reserved_labels: Labels the resolver never routes; a tenant
                cannot be bound to one
        """
        self._registry = registry
        self._session = session
        self._provisioner = provisioner
        self._router = router
        self._lock = lock
        self._seeder = seeder
        self._settings = settings
        self._probe = probe or DefaultProvisioningProbe()
        self._reserved = frozenset(label.strip().lower() for label in reserved_labels)

    async def run(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Provision a tenant end to end.

        Returns:
            ProvisioningResult in state ``ACTIVE``

        Raises:
            ValueError: If the request is invalid (bad or reserved domain,
                missing admin)
            DuplicateIdentityError: If the id or email belongs to another
                tenant, or the tenant is already provisioned
            BindingConflictError: If the domain is bound to another tenant
            AlreadyProvisioningError: If another run holds the lock
            ConnectionUnavailableError: If the central database cannot be
                reached before anything was recorded
            ProvisioningFailedError: For any other failure, after rollback
        """
        binding_key = self._binding_key_for(request)
        admin = self._admin_for(request)

        try:
            tenant_id = await self._choose_tenant_id(request, binding_key)
            async with self._lock.hold(tenant_id):
                run = await self._start(request, tenant_id, binding_key)
                self._probe.provisioning_started(
                    tenant_id.value, binding_key.value, run.resumed
                )
                return await self._drive(run, admin)
        except (TenancyError, ValueError):
            raise
        except Exception as e:
            # Nothing was recorded yet; failures inside the saga arrive
            # here already wrapped by _drive
            subject = (
                request.tenant_id.value if request.tenant_id else binding_key.value
            )
            step = ProvisioningStep.REGISTER.value
            self._probe.provisioning_failed(subject, step, e)
            if is_transient_error(e):
                raise ConnectionUnavailableError(CENTRAL_DATABASE, cause=e) from e
            raise ProvisioningFailedError(
                _reason(e),
                step=step,
                tenant_id=request.tenant_id.value if request.tenant_id else None,
            ) from e

    def _binding_key_for(self, request: ProvisioningRequest) -> BindingKey:
        binding_key = BindingKey.from_string(request.domain)
        if binding_key.value in self._reserved:
            raise ReservedBindingKeyError(binding_key.value)
        return binding_key

    def _admin_for(self, request: ProvisioningRequest) -> AdminPrincipal | None:
        policy = self._settings.admin_seed_policy
        if policy == AdminSeedPolicy.SKIP:
            return None
        if policy == AdminSeedPolicy.REQUIRED and request.admin is None:
            raise ValueError("An initial admin principal is required")
        return request.admin

    async def _choose_tenant_id(
        self, request: ProvisioningRequest, binding_key: BindingKey
    ) -> TenantId:
        """Pick the tenant id for this request.

        An explicit id is used as given. A derived id is kept if it is free
        or already belongs to this contact email (a resumable run);
        otherwise ``_1``, ``_2``, ... are tried.
        """
        if request.tenant_id is not None:
            return request.tenant_id

        email = request.company_email.strip().lower()
        base = TenantId.derive(binding_key.value)
        candidate = base

        for counter in range(1, MAX_SUFFIX_ATTEMPTS + 1):
            existing = await self._registry_step(
                lambda: self._registry.get_by_id(candidate)
            )
            if existing is None or existing.contact_email == email:
                if candidate != base:
                    self._probe.tenant_id_suffixed(base.value, candidate.value)
                return candidate
            candidate = base.with_suffix(counter)

        raise DuplicateIdentityError(
            f"No free tenant id derived from '{base.value}'", field="id"
        )

    async def _start(
        self,
        request: ProvisioningRequest,
        tenant_id: TenantId,
        binding_key: BindingKey,
    ) -> _Run:
        """Build the run, detecting a resumable earlier attempt."""
        tenant = Tenant.create(
            tenant_id=tenant_id,
            display_name=request.company_name,
            contact_email=request.company_email,
        )
        physical_name = self._provisioner.physical_name(tenant_id)

        existing = await self._registry_step(
            lambda: self._registry.get_by_id(tenant_id)
        )
        if existing is None:
            # Without a record nothing of ours can own this database; it
            # may still hold another tenant's data
            if await self._provisioner.exists(physical_name):
                self._probe.unowned_database_found(
                    tenant_id.value, physical_name.value
                )
                raise ProvisioningFailedError(
                    f"Database '{physical_name.value}' already exists "
                    "without a tenant record",
                    step=ProvisioningStep.REGISTER.value,
                    tenant_id=tenant_id.value,
                    physical_name=physical_name.value,
                )
            return _Run(
                tenant=tenant,
                binding_key=binding_key,
                physical_name=physical_name,
                resumed=False,
            )

        if (
            existing.status != TenantStatus.PROVISIONING
            or existing.contact_email != tenant.contact_email
        ):
            raise DuplicateIdentityError(
                f"Tenant '{tenant_id.value}' already exists", field="id"
            )

        return _Run(
            tenant=existing,
            binding_key=binding_key,
            physical_name=physical_name,
            resumed=True,
            state=ProvisioningState.TENANT_RECORDED,
            tenant_recorded=True,
        )

    async def _drive(
        self, run: _Run, admin: AdminPrincipal | None
    ) -> ProvisioningResult:
        step = ProvisioningStep.REGISTER
        try:
            if not run.tenant_recorded:
                await self._registry_step(lambda: self._registry.register(run.tenant))
                run.tenant_recorded = True
            else:
                self._probe.step_skipped(
                    run.tenant.id.value, step.value, "tenant record present"
                )
            self._advance(run, ProvisioningState.TENANT_RECORDED)

            step = ProvisioningStep.BIND
            await self._registry_step(
                lambda: self._registry.bind(run.tenant.id, run.binding_key)
            )
            self._advance(run, ProvisioningState.DOMAIN_BOUND)

            step = ProvisioningStep.CREATE_DATABASE
            run.database_touched = True
            await self._provisioner.create(run.tenant.id)
            self._advance(run, ProvisioningState.DATABASE_CREATED)

            step = ProvisioningStep.MIGRATE
            await self._provisioner.migrate(run.physical_name)
            revision = await self._provisioner.current_revision(run.physical_name)
            self._advance(run, ProvisioningState.MIGRATED)

            step = ProvisioningStep.SEED_ADMIN
            if admin is not None:
                run.admin_seeded = await self._seed_admin(run, admin)
            else:
                self._probe.step_skipped(
                    run.tenant.id.value, step.value, "no admin principal"
                )
            self._advance(run, ProvisioningState.SEEDED_ADMIN)

            step = ProvisioningStep.MARK_ACTIVE
            await self._registry_step(lambda: self._registry.mark_active(run.tenant.id))
            run.tenant.mark_active()
            self._advance(run, ProvisioningState.ACTIVE)

        except asyncio.CancelledError:
            self._probe.provisioning_failed(
                run.tenant.id.value, step.value, asyncio.CancelledError()
            )
            await asyncio.shield(self._compensate(run))
            raise
        except Exception as e:
            self._probe.provisioning_failed(run.tenant.id.value, step.value, e)
            await self._compensate(run)
            if isinstance(e, _LOGICAL_ERRORS):
                raise
            raise ProvisioningFailedError(
                _reason(e),
                step=step.value,
                tenant_id=run.tenant.id.value,
                physical_name=run.physical_name.value,
                rollback_warnings=run.warnings,
            ) from e

        self._probe.provisioning_succeeded(
            run.tenant.id.value, run.physical_name.value
        )
        return ProvisioningResult(
            tenant=run.tenant,
            binding_key=run.binding_key,
            physical_name=run.physical_name,
            schema_revision=revision,
            admin_seeded=run.admin_seeded,
            resumed=run.resumed,
        )

    async def _seed_admin(self, run: _Run, admin: AdminPrincipal) -> bool:
        async def seed(session: AsyncSession) -> bool:
            created = await self._seeder.seed(session, admin)
            await session.commit()
            return created

        return await asyncio.wait_for(
            self._router.with_tenant(run.tenant, seed),
            timeout=self._settings.operation_timeout_seconds,
        )

    async def _compensate(self, run: _Run) -> None:
        """Undo completed steps, newest first. Never raises."""
        run.state = ProvisioningState.FAILED
        tenant_id = run.tenant.id

        database_left = False
        if run.database_touched:
            await self._attempt(
                run,
                "release_connections",
                lambda: self._router.release(run.physical_name),
            )
            database_left = not await self._attempt(
                run,
                "drop_database",
                lambda: self._provisioner.drop(run.physical_name),
            )

        if run.tenant_recorded and database_left:
            # The record keeps the id claimed so no other tenant inherits
            # the database; a retry resumes, deprovisioning cleans up
            run.warnings.append(
                f"tenant record kept: database '{run.physical_name.value}' "
                "still exists"
            )
        elif run.tenant_recorded:
            await self._attempt(
                run,
                "remove_tenant",
                lambda: self._registry_step(lambda: self._registry.remove(tenant_id)),
            )

        if not run.warnings:
            run.state = ProvisioningState.ROLLED_BACK
        self._probe.rolled_back(tenant_id.value, run.warnings)

    async def _attempt(
        self, run: _Run, action: str, fn: Callable[[], Awaitable[object]]
    ) -> bool:
        """Run one compensating action; False (plus a warning) if it failed."""
        try:
            await fn()
        except Exception as e:
            self._probe.compensation_failed(run.tenant.id.value, action, e)
            run.warnings.append(f"{action} failed: {e}")
            return False
        return True

    async def _registry_step(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run one registry call in its own transaction, bounded and retried."""

        async def in_transaction() -> T:
            async with self._session.begin():
                return await fn()

        return await retry_transient(
            in_transaction,
            attempts=self._settings.max_attempts,
            backoff_seconds=self._settings.retry_backoff_seconds,
            timeout_seconds=self._settings.operation_timeout_seconds,
        )

    def _advance(self, run: _Run, state: ProvisioningState) -> None:
        run.state = state
        self._probe.state_reached(run.tenant.id.value, state.value)


def _reason(error: BaseException) -> str:
    reason = getattr(error, "reason", None)
    if isinstance(reason, str):
        return reason
    if isinstance(error, TimeoutError):
        return "Operation timed out"
    return str(error) or type(error).__name__
