"""
Feature modules live under this package.

Each module owns a service.py (plain functions over the repository, callable
without a request) and an admin.py blueprint with its templates. Modules reuse
the platform primitives: repository, audit, rbac, identity and storage.
"""
