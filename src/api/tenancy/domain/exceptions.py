"""Domain exceptions for the tenancy context."""

from __future__ import annotations


class InvalidStatusTransitionError(ValueError):
    """Raised when a tenant status change violates the lifecycle.

    Deleted tenants are terminal; a provisioning tenant can only become
    active or deleted.
    """

    def __init__(self, tenant_id: str, current: str, target: str):
        super().__init__(
            f"Tenant '{tenant_id}' cannot move from '{current}' to '{target}'"
        )
        self.tenant_id = tenant_id
        self.current = current
        self.target = target


class ReservedBindingKeyError(ValueError):
    """Raised when a tenant asks for a label the router never resolves.

    Reserved labels (``www``, ``api``, ...) name fixed routes, so a tenant
    bound to one could never be reached.
    """

    def __init__(self, binding_key: str):
        super().__init__(f"Binding key '{binding_key}' is reserved")
        self.binding_key = binding_key
