"""Domain layer for the tenancy context.

Pure business objects and rules; no framework or storage imports.
"""
