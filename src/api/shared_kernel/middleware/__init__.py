"""Shared middleware for cross-cutting concerns.

This module contains the request-scoped tenant context value object and
its observability probe. Resolution itself is implemented by the tenancy
bounded context's dependency layer.
"""
