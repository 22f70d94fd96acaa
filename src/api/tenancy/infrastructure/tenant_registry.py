"""PostgreSQL implementation of ITenantRegistry.

The registry lives in the central database and is the only writer of
tenant and route binding rows. Uniqueness is enforced by table
constraints; IntegrityErrors are translated by constraint name.

The registry never opens transactions itself. Callers wrap each step in
``async with session.begin()`` so every registry mutation commits (or
rolls back) on its own.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenancy.domain.aggregates import RouteBinding, Tenant
from tenancy.domain.value_objects import BindingKey, TenantId, TenantStatus
from tenancy.infrastructure.models import RouteBindingModel, TenantModel
from tenancy.infrastructure.observability import (
    DefaultTenantRegistryProbe,
    TenantRegistryProbe,
)
from tenancy.ports.exceptions import (
    BindingConflictError,
    DuplicateIdentityError,
    TenantNotFoundError,
)
from tenancy.ports.repositories import ITenantRegistry


class TenantRegistry(ITenantRegistry):
    """Repository managing the central tenants and route_bindings tables."""

    def __init__(
        self,
        session: AsyncSession,
        probe: TenantRegistryProbe | None = None,
    ) -> None:
        """Initialize registry with a central database session.

        Args:
            session: AsyncSession bound to the central database
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultTenantRegistryProbe()

    async def register(self, tenant: Tenant) -> TenantId:
        """Insert a new tenant record.

        Args:
            tenant: Tenant aggregate in ``provisioning`` status

        Returns:
            The tenant's id

        Raises:
            DuplicateIdentityError: If the id or contact email already exists
        """
        model = TenantModel(
            id=tenant.id.value,
            display_name=tenant.display_name,
            contact_email=tenant.contact_email,
            status=tenant.status.value,
        )
        self._session.add(model)

        try:
            await self._session.flush()
        except IntegrityError as e:
            if "uq_tenants_contact_email" in str(e):
                self._probe.duplicate_identity(tenant.id.value, "contact_email")
                raise DuplicateIdentityError(
                    f"Contact email '{tenant.contact_email}' is already registered",
                    field="contact_email",
                ) from e
            if "pk_tenants" in str(e):
                self._probe.duplicate_identity(tenant.id.value, "id")
                raise DuplicateIdentityError(
                    f"Tenant '{tenant.id.value}' already exists",
                    field="id",
                ) from e
            raise

        self._probe.tenant_registered(tenant.id.value)
        return tenant.id

    async def bind(self, tenant_id: TenantId, binding_key: BindingKey) -> None:
        """Bind a routing key to a tenant.

        Raises:
            BindingConflictError: If the key belongs to another tenant
            TenantNotFoundError: If the tenant does not exist
        """
        if await self._get_model(tenant_id) is None:
            self._probe.tenant_not_found(tenant_id.value)
            raise TenantNotFoundError(tenant_id.value)

        stmt = select(RouteBindingModel).where(
            RouteBindingModel.binding_key == binding_key.value
        )
        result = await self._session.execute(stmt)
        existing = result.scalar_one_or_none()

        if existing is not None:
            if existing.tenant_id == tenant_id.value:
                return
            self._probe.binding_conflict(binding_key.value, tenant_id.value)
            raise BindingConflictError(
                binding_key.value, existing_tenant_id=existing.tenant_id
            )

        self._session.add(
            RouteBindingModel(
                binding_key=binding_key.value,
                tenant_id=tenant_id.value,
            )
        )

        try:
            await self._session.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent bind of the same key
            if "pk_route_bindings" in str(e):
                self._probe.binding_conflict(binding_key.value, tenant_id.value)
                raise BindingConflictError(binding_key.value) from e
            raise

        self._probe.binding_created(tenant_id.value, binding_key.value)

    async def mark_active(self, tenant_id: TenantId) -> None:
        """Flip status to ``active``.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            InvalidStatusTransitionError: If the tenant is deleted
        """
        await self._change_status(tenant_id, TenantStatus.ACTIVE)

    async def mark_deleted(self, tenant_id: TenantId) -> None:
        """Flip status to ``deleted``.

        Raises:
            TenantNotFoundError: If the tenant does not exist
        """
        await self._change_status(tenant_id, TenantStatus.DELETED)

    async def resolve(self, binding_key: BindingKey) -> Tenant | None:
        """Return the tenant bound to ``binding_key``, whatever its status."""
        stmt = (
            select(TenantModel)
            .join(RouteBindingModel, RouteBindingModel.tenant_id == TenantModel.id)
            .where(RouteBindingModel.binding_key == binding_key.value)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()

        if model is None:
            return None
        return self._to_domain(model)

    async def get_by_id(self, tenant_id: TenantId) -> Tenant | None:
        """Fetch a tenant by id."""
        model = await self._get_model(tenant_id)
        if model is None:
            return None
        return self._to_domain(model)

    async def list_all(self) -> list[Tenant]:
        """Fetch every tenant, oldest first."""
        stmt = select(TenantModel).order_by(TenantModel.created_at, TenantModel.id)
        result = await self._session.execute(stmt)
        return [self._to_domain(model) for model in result.scalars().all()]

    async def list_bindings(self, tenant_id: TenantId) -> list[RouteBinding]:
        """Fetch the bindings owned by a tenant."""
        stmt = (
            select(RouteBindingModel)
            .where(RouteBindingModel.tenant_id == tenant_id.value)
            .order_by(RouteBindingModel.binding_key)
        )
        result = await self._session.execute(stmt)
        return [
            RouteBinding(
                binding_key=BindingKey(value=model.binding_key),
                tenant_id=TenantId(value=model.tenant_id),
            )
            for model in result.scalars().all()
        ]

    async def remove(self, tenant_id: TenantId) -> bool:
        """Delete the tenant row and every binding pointing at it.

        Returns:
            True if the tenant row existed
        """
        await self._session.execute(
            delete(RouteBindingModel).where(
                RouteBindingModel.tenant_id == tenant_id.value
            )
        )
        result = await self._session.execute(
            delete(TenantModel).where(TenantModel.id == tenant_id.value)
        )
        removed = bool(result.rowcount)

        if removed:
            self._probe.tenant_removed(tenant_id.value)
        return removed

    async def _get_model(self, tenant_id: TenantId) -> TenantModel | None:
        stmt = select(TenantModel).where(TenantModel.id == tenant_id.value)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def _change_status(self, tenant_id: TenantId, target: TenantStatus) -> None:
        model = await self._get_model(tenant_id)
        if model is None:
            self._probe.tenant_not_found(tenant_id.value)
            raise TenantNotFoundError(tenant_id.value)

        tenant = self._to_domain(model)
        if target == TenantStatus.ACTIVE:
            tenant.mark_active()
        else:
            tenant.mark_deleted()

        if model.status == tenant.status.value:
            return

        model.status = tenant.status.value
        await self._session.flush()
        self._probe.status_changed(tenant_id.value, tenant.status.value)

    @staticmethod
    def _to_domain(model: TenantModel) -> Tenant:
        return Tenant(
            id=TenantId(value=model.id),
            display_name=model.display_name,
            contact_email=model.contact_email,
            status=TenantStatus(model.status),
            created_at=model.created_at,
        )
