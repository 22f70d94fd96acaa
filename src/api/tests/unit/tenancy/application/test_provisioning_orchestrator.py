"""Unit tests for ProvisioningOrchestrator.

The saga runs against in-memory fakes of the registry, provisioner,
connection router, lock and seeder, so every state and compensation path
can be driven without a database.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from unittest.mock import Mock

import pytest

from infrastructure.settings import AdminSeedPolicy
from tenancy.application.observability import ProvisioningProbe
from tenancy.application.services import (
    ProvisioningOrchestrator,
    ProvisioningRequest,
)
from tenancy.domain.aggregates import Tenant
from tenancy.domain.exceptions import ReservedBindingKeyError
from tenancy.domain.value_objects import (
    AdminPrincipal,
    BindingKey,
    ProvisioningState,
    TenantId,
    TenantStatus,
)
from tenancy.ports.exceptions import (
    AlreadyProvisioningError,
    BindingConflictError,
    ConnectionUnavailableError,
    DuplicateIdentityError,
    MigrationFailedError,
    ProvisioningFailedError,
)
from tests.unit.tenancy.fakes import HEAD_REVISION, FakeProvisioner, drop_failure


def _request(domain: str = "acme", email: str = "ops@acme.test", **kwargs):
    return ProvisioningRequest(
        company_name=kwargs.pop("company_name", "Acme Corp"),
        company_email=email,
        domain=domain,
        admin=kwargs.pop(
            "admin",
            AdminPrincipal(
                name="Ada", email=f"admin@{domain}.test", password="s3cret-pass"
            ),
        ),
        **kwargs,
    )


def _migration_failure() -> MigrationFailedError:
    return MigrationFailedError(
        "8e4b27c5d0f3", RuntimeError("syntax error"), "tenant_acme"
    )


class TestHappyPath:
    """Tests for a provisioning run that completes."""

    @pytest.mark.asyncio
    async def test_provisions_tenant_end_to_end(
        self, orchestrator, registry, provisioner, router, lock
    ):
        """A run records, binds, creates, migrates, seeds and activates."""
        result = await orchestrator.run(_request())

        assert result.state == ProvisioningState.ACTIVE
        assert result.tenant.id == TenantId(value="acme")
        assert result.tenant.status == TenantStatus.ACTIVE
        assert result.physical_name.value == "tenant_acme"
        assert result.schema_revision == HEAD_REVISION
        assert result.admin_seeded is True
        assert result.resumed is False

        assert registry.tenants["acme"].status == TenantStatus.ACTIVE
        assert registry.bindings == {"acme": "acme"}
        assert provisioner.databases == {"tenant_acme"}
        assert router.tables["tenant_acme"][0]["email"] == "admin@acme.test"
        assert lock.held == set()

    @pytest.mark.asyncio
    async def test_uses_explicit_tenant_id(self, orchestrator, registry, provisioner):
        """An explicit id is used as given instead of deriving one."""
        result = await orchestrator.run(
            _request(tenant_id=TenantId.from_string("customer_42"))
        )

        assert result.tenant.id.value == "customer_42"
        assert registry.bindings == {"acme": "customer_42"}
        assert provisioner.databases == {"tenant_customer_42"}

    @pytest.mark.asyncio
    async def test_derives_id_from_domain(self, orchestrator):
        """Hyphens in the domain become underscores in the id."""
        result = await orchestrator.run(_request(domain="acme-corp"))

        assert result.tenant.id.value == "acme_corp"
        assert result.physical_name.value == "tenant_acme_corp"

    @pytest.mark.asyncio
    async def test_suffixes_derived_id_on_collision(self, orchestrator, registry):
        """A derived id owned by another tenant gets a numeric suffix."""
        other = Tenant.create(
            tenant_id=TenantId(value="acme_corp"),
            display_name="Other Acme",
            contact_email="someone@else.test",
        )
        await registry.register(other)

        result = await orchestrator.run(_request(domain="acme-corp"))

        assert result.tenant.id.value == "acme_corp_1"
        assert registry.tenants["acme_corp"].contact_email == "someone@else.test"

    @pytest.mark.asyncio
    async def test_skips_admin_when_none_given(self, orchestrator, router):
        """With the optional policy and no admin, seeding is skipped."""
        result = await orchestrator.run(_request(admin=None))

        assert result.state == ProvisioningState.ACTIVE
        assert result.admin_seeded is False
        assert router.tables.get("tenant_acme", []) == []


class TestAdminSeedPolicy:
    """Tests for the admin seed policy."""

    @pytest.mark.asyncio
    async def test_required_policy_rejects_missing_admin(
        self, orchestrator, provisioning_settings, registry, provisioner
    ):
        """Nothing is touched when a required admin is missing."""
        provisioning_settings.admin_seed_policy = AdminSeedPolicy.REQUIRED

        with pytest.raises(ValueError):
            await orchestrator.run(_request(admin=None))

        assert registry.tenants == {}
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_skip_policy_ignores_admin(
        self, orchestrator, provisioning_settings, router
    ):
        """The skip policy never seeds, even when an admin is supplied."""
        provisioning_settings.admin_seed_policy = AdminSeedPolicy.SKIP

        result = await orchestrator.run(_request())

        assert result.admin_seeded is False
        assert router.tables.get("tenant_acme", []) == []


class TestRollback:
    """Tests for compensation after a failed step."""

    @pytest.mark.asyncio
    async def test_migration_failure_rolls_everything_back(
        self, orchestrator, registry, provisioner, router
    ):
        """A failed migration drops the database and removes the record."""
        provisioner.fail_migrate = _migration_failure()

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        error = exc_info.value
        assert error.step == "migrate"
        assert error.tenant_id == "acme"
        assert error.physical_name == "tenant_acme"
        assert error.rollback_warnings == []
        assert isinstance(error.__cause__, MigrationFailedError)

        assert registry.tenants == {}
        assert registry.bindings == {}
        assert provisioner.databases == set()
        assert "tenant_acme" in provisioner.dropped
        assert "tenant_acme" in router.released

    @pytest.mark.asyncio
    async def test_drop_failure_is_reported_as_warning(
        self, orchestrator, registry, provisioner
    ):
        """A failing compensation is a warning, not the primary error."""
        provisioner.fail_migrate = _migration_failure()
        provisioner.fail_drop = drop_failure()

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        error = exc_info.value
        assert error.step == "migrate"
        assert "syntax error" in error.reason
        assert error.rollback_warnings == [
            "drop_database failed: could not drop database",
            "tenant record kept: database 'tenant_acme' still exists",
        ]

    @pytest.mark.asyncio
    async def test_undropped_database_keeps_its_record(
        self, orchestrator, registry, provisioner
    ):
        """The record of a database that survived rollback stays claimed."""
        provisioner.fail_migrate = _migration_failure()
        provisioner.fail_drop = drop_failure()

        with pytest.raises(ProvisioningFailedError):
            await orchestrator.run(_request())

        assert provisioner.databases == {"tenant_acme"}
        assert registry.tenants["acme"].status == TenantStatus.PROVISIONING
        assert registry.bindings == {"acme": "acme"}

        # Another company asking for the same domain never inherits it
        provisioner.fail_migrate = None
        provisioner.fail_drop = None
        with pytest.raises(BindingConflictError):
            await orchestrator.run(_request(email="ops@other.test"))

        assert set(registry.tenants) == {"acme"}
        assert provisioner.databases == {"tenant_acme"}

    @pytest.mark.asyncio
    async def test_undropped_database_resumes_for_same_company(
        self, orchestrator, registry, provisioner
    ):
        """Retrying with the original email resumes the kept record."""
        provisioner.fail_migrate = _migration_failure()
        provisioner.fail_drop = drop_failure()
        with pytest.raises(ProvisioningFailedError):
            await orchestrator.run(_request())

        provisioner.fail_migrate = None
        provisioner.fail_drop = None
        result = await orchestrator.run(_request())

        assert result.resumed is True
        assert result.physical_name.value == "tenant_acme"
        assert registry.tenants["acme"].status == TenantStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_refuses_database_without_record(
        self, orchestrator, registry, provisioner, lock
    ):
        """A fresh run never adopts or drops a database it did not record."""
        provisioner.databases.add("tenant_acme")
        provisioner.revisions["tenant_acme"] = HEAD_REVISION

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        error = exc_info.value
        assert error.step == "register"
        assert error.tenant_id == "acme"
        assert error.physical_name == "tenant_acme"
        assert "without a tenant record" in error.reason
        assert registry.tenants == {}
        assert registry.bindings == {}
        assert provisioner.databases == {"tenant_acme"}
        assert provisioner.dropped == []
        assert lock.held == set()

    @pytest.mark.asyncio
    async def test_reports_database_without_record_to_probe(
        self,
        registry,
        central_session,
        provisioner,
        router,
        lock,
        seeder,
        provisioning_settings,
    ):
        probe = Mock(spec=ProvisioningProbe)
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=lock,
            seeder=seeder,
            settings=provisioning_settings,
            probe=probe,
        )
        provisioner.databases.add("tenant_acme")

        with pytest.raises(ProvisioningFailedError):
            await orchestrator.run(_request())

        probe.unowned_database_found.assert_called_once_with("acme", "tenant_acme")
        probe.provisioning_started.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_failure_removes_record(
        self, orchestrator, registry, provisioner
    ):
        """A failed CREATE DATABASE leaves no record and no database."""
        provisioner.fail_create = ProvisioningFailedError(
            "permission denied to create database"
        )

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        assert exc_info.value.step == "create_database"
        assert exc_info.value.reason == "permission denied to create database"
        assert registry.tenants == {}
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_seed_failure_drops_database(
        self, orchestrator, registry, provisioner, seeder
    ):
        """A failed admin seed undoes the migrated database."""
        seeder.fail_with = RuntimeError("users table missing")

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        assert exc_info.value.step == "seed_admin"
        assert registry.tenants == {}
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_activation_failure_drops_database(
        self, orchestrator, registry, provisioner
    ):
        """Failing to flip the status still rolls back the whole run."""
        registry.fail_on["mark_active"] = RuntimeError("registry unavailable")

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        assert exc_info.value.step == "mark_active"
        assert registry.tenants == {}
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_remove_failure_keeps_primary_error(
        self, orchestrator, registry, provisioner
    ):
        """A failed record removal is reported alongside the primary error."""
        provisioner.fail_migrate = _migration_failure()
        registry.fail_on["remove"] = RuntimeError("registry down")

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        error = exc_info.value
        assert error.step == "migrate"
        assert error.rollback_warnings == ["remove_tenant failed: registry down"]
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_binding_conflict_surfaces_unwrapped(
        self, orchestrator, registry, provisioner
    ):
        """A domain owned by another tenant is a conflict, after rollback."""
        owner = Tenant.create(
            tenant_id=TenantId(value="globex"),
            display_name="Globex",
            contact_email="ops@globex.test",
        )
        await registry.register(owner)
        await registry.bind(owner.id, BindingKey(value="acme"))

        with pytest.raises(BindingConflictError):
            await orchestrator.run(_request())

        assert set(registry.tenants) == {"globex"}
        assert registry.bindings == {"acme": "globex"}
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_duplicate_email_surfaces_unwrapped(self, orchestrator, registry):
        """Registering a second tenant with the same email is rejected."""
        await orchestrator.run(_request(domain="acme"))

        with pytest.raises(DuplicateIdentityError) as exc_info:
            await orchestrator.run(_request(domain="acme-two"))

        assert exc_info.value.field == "contact_email"
        assert set(registry.tenants) == {"acme"}

    @pytest.mark.asyncio
    async def test_reports_failure_to_probe(
        self,
        registry,
        central_session,
        provisioner,
        router,
        lock,
        seeder,
        provisioning_settings,
    ):
        """The failing step and the rollback reach the probe."""
        probe = Mock(spec=ProvisioningProbe)
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=lock,
            seeder=seeder,
            settings=provisioning_settings,
            probe=probe,
        )
        provisioner.fail_migrate = _migration_failure()

        with pytest.raises(ProvisioningFailedError):
            await orchestrator.run(_request())

        probe.provisioning_failed.assert_called_once()
        assert probe.provisioning_failed.call_args.args[:2] == ("acme", "migrate")
        probe.rolled_back.assert_called_once_with("acme", [])
        probe.provisioning_succeeded.assert_not_called()


class TestRequestValidation:
    """Tests for requests refused before the saga starts."""

    @pytest.mark.asyncio
    async def test_rejects_reserved_domain(
        self,
        registry,
        central_session,
        provisioner,
        router,
        lock,
        seeder,
        provisioning_settings,
    ):
        """A label the resolver never routes cannot be provisioned."""
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=lock,
            seeder=seeder,
            settings=provisioning_settings,
            reserved_labels=["WWW", "api"],
        )

        with pytest.raises(ReservedBindingKeyError) as exc_info:
            await orchestrator.run(_request(domain="www"))

        assert isinstance(exc_info.value, ValueError)
        assert exc_info.value.binding_key == "www"
        assert registry.tenants == {}
        assert lock.acquisitions == []
        assert provisioner.databases == set()

    @pytest.mark.asyncio
    async def test_unreserved_domain_provisions(self, orchestrator, registry):
        """Without reserved labels configured any valid domain is accepted."""
        result = await orchestrator.run(_request(domain="www"))

        assert result.binding_key.value == "www"
        assert registry.bindings == {"www": "www"}


class TestCentralFailures:
    """Tests for failures before anything is recorded."""

    @pytest.mark.asyncio
    async def test_unreachable_registry_is_connection_unavailable(
        self, orchestrator, registry, lock
    ):
        """A refused connection while choosing the id maps to a retryable error."""
        refused = ConnectionRefusedError("connection refused")
        registry.fail_on["get_by_id"] = refused

        with pytest.raises(ConnectionUnavailableError) as exc_info:
            await orchestrator.run(_request())

        assert exc_info.value.database == "central"
        assert exc_info.value.cause is refused
        assert lock.acquisitions == []
        assert registry.tenants == {}

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped_at_register(
        self, orchestrator, registry
    ):
        """Non-transient errors surface as a failed register step."""
        registry.fail_on["get_by_id"] = RuntimeError("catalog corrupted")

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request(tenant_id=TenantId(value="acme")))

        error = exc_info.value
        assert error.step == "register"
        assert error.reason == "catalog corrupted"
        assert error.tenant_id == "acme"
        assert isinstance(error.__cause__, RuntimeError)
        assert registry.tenants == {}

    @pytest.mark.asyncio
    async def test_lock_failure_is_wrapped_at_register(
        self,
        registry,
        central_session,
        provisioner,
        router,
        seeder,
        provisioning_settings,
    ):
        probe = Mock(spec=ProvisioningProbe)
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=_BrokenLock(),
            seeder=seeder,
            settings=provisioning_settings,
            probe=probe,
        )

        with pytest.raises(ProvisioningFailedError) as exc_info:
            await orchestrator.run(_request())

        assert exc_info.value.step == "register"
        assert exc_info.value.tenant_id is None
        assert probe.provisioning_failed.call_args.args[:2] == ("acme", "register")
        assert registry.tenants == {}

    @pytest.mark.asyncio
    async def test_retries_transient_registry_errors(
        self,
        registry,
        central_session,
        provisioner,
        router,
        lock,
        seeder,
        provisioning_settings,
    ):
        """Each registry lookup is retried up to ``max_attempts`` times."""
        settings = provisioning_settings.model_copy(update={"max_attempts": 3})
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=lock,
            seeder=seeder,
            settings=settings,
        )
        registry.fail_on["get_by_id"] = ConnectionRefusedError("connection refused")

        with pytest.raises(ConnectionUnavailableError):
            await orchestrator.run(_request())

        assert central_session.transactions == 3


class _BrokenLock:
    """IProvisioningLock whose admin connection fails with a logic error."""

    @asynccontextmanager
    async def hold(self, tenant_id) -> AsyncIterator[None]:
        raise RuntimeError("advisory lock query failed")
        yield


class TestResume:
    """Tests for re-running after an interrupted attempt."""

    @pytest.mark.asyncio
    async def test_resumes_half_provisioned_tenant(
        self, orchestrator, registry, provisioner
    ):
        """A leftover provisioning record with its database is picked up."""
        request = _request()
        leftover = Tenant.create(
            tenant_id=TenantId(value="acme"),
            display_name=request.company_name,
            contact_email=request.company_email,
        )
        await registry.register(leftover)
        provisioner.databases.add("tenant_acme")

        result = await orchestrator.run(request)

        assert result.resumed is True
        assert result.state == ProvisioningState.ACTIVE
        assert provisioner.created == []
        assert provisioner.databases == {"tenant_acme"}
        assert registry.tenants["acme"].status == TenantStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_does_not_reseed_existing_admin(
        self, orchestrator, registry, provisioner, router
    ):
        """Seeding again after a crash leaves a single admin row."""
        request = _request()
        leftover = Tenant.create(
            tenant_id=TenantId(value="acme"),
            display_name=request.company_name,
            contact_email=request.company_email,
        )
        await registry.register(leftover)
        provisioner.databases.add("tenant_acme")
        router.tables["tenant_acme"] = [
            {"id": 1, "name": "Ada", "email": "admin@acme.test", "role": "admin"}
        ]

        result = await orchestrator.run(request)

        assert result.admin_seeded is False
        assert len(router.tables["tenant_acme"]) == 1

    @pytest.mark.asyncio
    async def test_rejects_rerun_of_active_tenant(self, orchestrator, provisioner):
        """Provisioning an already active tenant again is a duplicate."""
        await orchestrator.run(_request())

        with pytest.raises(DuplicateIdentityError):
            await orchestrator.run(_request())

        assert provisioner.databases == {"tenant_acme"}


class TestConcurrency:
    """Tests for concurrent provisioning runs."""

    @pytest.mark.asyncio
    async def test_distinct_tenants_provision_in_parallel(
        self, orchestrator, registry, provisioner, router
    ):
        """N concurrent runs with distinct ids yield N isolated databases."""
        domains = [f"tenant-{i}" for i in range(10)]

        results = await asyncio.gather(
            *(
                orchestrator.run(_request(domain=domain, email=f"ops@{domain}.test"))
                for domain in domains
            )
        )

        assert len({result.physical_name.value for result in results}) == 10
        assert len(provisioner.databases) == 10
        assert all(t.status == TenantStatus.ACTIVE for t in registry.tenants.values())
        for result in results:
            rows = router.tables[result.physical_name.value]
            assert [row["email"] for row in rows] == [
                f"admin@{result.binding_key.value}.test"
            ]

    @pytest.mark.asyncio
    async def test_same_tenant_twice_is_rejected(self, orchestrator, provisioner):
        """A second run for a tenant id that is mid-provisioning is refused."""
        results = await asyncio.gather(
            orchestrator.run(_request()),
            orchestrator.run(_request()),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        assert len(errors) == 1
        assert isinstance(errors[0], AlreadyProvisioningError)
        assert provisioner.databases == {"tenant_acme"}

    @pytest.mark.asyncio
    async def test_held_lock_rejects_run(self, orchestrator, lock, registry):
        """A lock held elsewhere stops the run before anything is written."""
        lock.held.add("acme")

        with pytest.raises(AlreadyProvisioningError):
            await orchestrator.run(_request())

        assert registry.tenants == {}


class _BlockingProvisioner(FakeProvisioner):
    """Provisioner whose migrate never finishes until cancelled."""

    def __init__(self) -> None:
        super().__init__(prefix="tenant_")
        self.migrating = asyncio.Event()

    async def migrate(self, name) -> None:
        self.migrating.set()
        await asyncio.Event().wait()


class TestCancellation:
    """Tests for a run cancelled mid-flight."""

    @pytest.mark.asyncio
    async def test_cancelled_run_is_compensated(
        self, registry, central_session, router, lock, seeder, provisioning_settings
    ):
        """Cancelling during migration still drops the database."""
        provisioner = _BlockingProvisioner()
        router._provisioner = provisioner
        orchestrator = ProvisioningOrchestrator(
            registry=registry,
            session=central_session,
            provisioner=provisioner,
            router=router,
            lock=lock,
            seeder=seeder,
            settings=provisioning_settings,
        )

        task = asyncio.create_task(orchestrator.run(_request()))
        await provisioner.migrating.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert registry.tenants == {}
        assert provisioner.databases == set()
        assert lock.held == set()
