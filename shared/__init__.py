"""
Shared infrastructure for the Screenshot Service.

- `shared.config` for environment-based configuration
- `shared.logging` for structlog-based structured logging

Both the HTTP layer (`api/`) and the capture pipeline (`capture/`) treat
`shared/` as read-only infrastructure code.
"""
