"""Tenancy bounded context.

Tenant registry, physical database provisioning, per-request tenant
resolution and tenant-scoped connection routing.
"""
