"""Core services and cross-cutting concerns.

Nothing is re-exported here so that ``app.config`` can import
``app.core.constants`` without pulling in the database layer. Import
from the submodules directly:

- app.core.database: Base, get_db, TenantScope, TenantSession
- app.core.errors: AppException and the HTTP error classes
- app.core.auth: tokens, password hashing, auth dependencies
- app.core.permissions: role checks
- app.core.audit: audit log
- app.core.cache / app.core.rate_limit: Redis-backed helpers
- app.core.jobs: arq background jobs
"""
