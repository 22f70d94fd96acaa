"""Value objects for the tenancy domain.

Value objects are immutable descriptors that provide type safety and
domain semantics for identifiers and domain concepts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import hashlib
import re

from ulid import ULID

# PostgreSQL truncates identifiers beyond 63 bytes (NAMEDATALEN - 1).
MAX_DATABASE_NAME_LENGTH = 63
MAX_TENANT_ID_LENGTH = 40

_TENANT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_]{0,39}$")
_BINDING_KEY_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_NON_IDENTIFIER_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUNS = re.compile(r"_+")


class TenantStatus(StrEnum):
    """Lifecycle status of a tenant record."""

    PROVISIONING = "provisioning"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class ProvisioningState(StrEnum):
    """States of one provisioning run.

    Happy path: STARTED -> TENANT_RECORDED -> DOMAIN_BOUND ->
    DATABASE_CREATED -> MIGRATED -> SEEDED_ADMIN -> ACTIVE.
    FAILED is reachable from any non-terminal state, ROLLED_BACK from FAILED.
    """

    STARTED = "started"
    TENANT_RECORDED = "tenant_recorded"
    DOMAIN_BOUND = "domain_bound"
    DATABASE_CREATED = "database_created"
    MIGRATED = "migrated"
    SEEDED_ADMIN = "seeded_admin"
    ACTIVE = "active"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transition is possible."""
        return self in (ProvisioningState.ACTIVE, ProvisioningState.ROLLED_BACK)


@dataclass(frozen=True)
class TenantId:
    """Identifier for a Tenant aggregate.

    Immutable once created and the sole input to the physical database
    name. Restricted to lowercase alphanumerics and underscores so the
    derived database name is injective and needs no quoting games.
    """

    value: str

    def __post_init__(self) -> None:
        if not _TENANT_ID_PATTERN.match(self.value):
            raise ValueError(
                f"Invalid TenantId '{self.value}': must match "
                f"{_TENANT_ID_PATTERN.pattern}"
            )

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def generate(cls) -> TenantId:
        """Generate an opaque TenantId from a lowercase ULID."""
        return cls(value=str(ULID()).lower())

    @classmethod
    def from_string(cls, value: str) -> TenantId:
        """Create TenantId from an externally supplied string.

        Raises:
            ValueError: If the value is not a valid tenant id
        """
        return cls(value=value.strip().lower())

    @classmethod
    def derive(cls, source: str) -> TenantId:
        """Derive a slug TenantId from a human-chosen name or domain.

        Lowercases, replaces anything outside [a-z0-9] with underscores,
        collapses runs and trims. Falls back to a generated id when nothing
        usable remains.

        Example:
            TenantId.derive("Acme Corporation") -> TenantId("acme_corporation")
        """
        slug = _NON_IDENTIFIER_CHARS.sub("_", source.strip().lower())
        slug = _UNDERSCORE_RUNS.sub("_", slug).strip("_")
        if not slug:
            return cls.generate()
        return cls(value=slug[:MAX_TENANT_ID_LENGTH].rstrip("_"))

    def with_suffix(self, counter: int) -> TenantId:
        """Return a collision-avoidance variant (``acme`` -> ``acme_2``)."""
        suffix = f"_{counter}"
        base = self.value[: MAX_TENANT_ID_LENGTH - len(suffix)].rstrip("_")
        return TenantId(value=f"{base}{suffix}")


@dataclass(frozen=True)
class BindingKey:
    """Human-facing routing key: a subdomain label or leading path segment.

    Must be a valid DNS label and not purely numeric.
    """

    value: str

    def __post_init__(self) -> None:
        if not _BINDING_KEY_PATTERN.match(self.value):
            raise ValueError(
                f"Invalid binding key '{self.value}': must be a lowercase DNS label"
            )
        if self.value.isdigit():
            raise ValueError(f"Invalid binding key '{self.value}': numeric-only")

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> BindingKey:
        """Normalize (trim, lowercase) and validate a binding key.

        Raises:
            ValueError: If the value is not a usable label
        """
        return cls(value=value.strip().lower())


@dataclass(frozen=True)
class PhysicalDatabaseName:
    """Name of a tenant's physical database.

    Always built through ``for_tenant`` so the same tenant id yields the
    same name on every call, including after a crash mid-provisioning.
    """

    value: str

    def __str__(self) -> str:
        """Return string representation."""
        return self.value

    @classmethod
    def for_tenant(cls, prefix: str, tenant_id: TenantId) -> PhysicalDatabaseName:
        """Compute ``prefix + sanitize(tenant_id)``."""
        return cls(value=sanitize_database_name(prefix + tenant_id.value))


def sanitize_database_name(raw: str) -> str:
    """Turn a raw name into a valid, stable PostgreSQL identifier.

    Valid TenantIds under a valid prefix pass through unchanged. Anything
    else is lowercased, stripped of non-identifier characters, forced to
    start with a letter or underscore, and, when too long, truncated with a
    hash of the full raw name appended so distinct inputs stay distinct.
    """
    name = _NON_IDENTIFIER_CHARS.sub("_", raw.lower())
    if not name or name[0].isdigit():
        name = f"_{name}"
    if len(name) > MAX_DATABASE_NAME_LENGTH:
        digest = hashlib.sha1(raw.encode()).hexdigest()[:8]
        name = f"{name[: MAX_DATABASE_NAME_LENGTH - len(digest) - 1]}_{digest}"
    return name


@dataclass(frozen=True)
class AdminPrincipal:
    """First administrator created inside a freshly provisioned tenant."""

    name: str
    email: str
    password: str = field(repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "email", self.email.strip().lower())
