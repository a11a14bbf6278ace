"""
Domain error taxonomy.

Business-rule violations carry a stable, public ``detail`` so callers never
need to phrase messages at the raise site; the HTTP layer and the realtime
endpoint both surface ``detail`` verbatim. Infrastructure errors never expose
their cause to clients.
"""
from typing import Optional


class DomainError(Exception):
    detail = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ── Business rules ───────────────────────────────────────────────────────────

class NotFound(DomainError):
    detail = "Not found"


class Forbidden(DomainError):
    detail = "Unauthorized"


class InvalidInput(DomainError):
    detail = "Invalid input"


class Conflict(DomainError):
    detail = "Conflict"


class NoRecipients(DomainError):
    """Administrative fan-out resolved to an empty recipient set."""
    detail = "No admins found to notify"


# ── Infrastructure ───────────────────────────────────────────────────────────

class InfrastructureError(DomainError):
    detail = "Internal server error"


class StorageFailure(InfrastructureError):
    pass


class TransportFailure(InfrastructureError):
    pass
