"""Domain exceptions raised by the coordination services.

Each exception carries the error ``kind`` rendered in the API envelope
``{"error": kind, "message": ...}``. Services raise these; only the
gateway decides how they map onto HTTP.
"""


class CoordinationError(Exception):
    """Base exception for coordination operations."""

    kind = "Internal Server Error"

    def __init__(self, message: str | None = None):
        self.message = message or self.kind
        super().__init__(self.message)


class UnauthorizedError(CoordinationError):
    """Missing or invalid credential."""

    kind = "Unauthorized"


class ForbiddenError(CoordinationError):
    """Valid credential, insufficient role or not the owner."""

    kind = "Forbidden"


class NotFoundError(CoordinationError):
    """Referenced entity does not exist."""

    kind = "Not Found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} not found")
        else:
            super().__init__(f"{entity} {entity_id} not found")


class InvalidStateError(CoordinationError):
    """Operation not legal in the entity's current lifecycle state."""

    kind = "InvalidState"


class InvalidTransitionError(InvalidStateError):
    kind = "InvalidTransition"


class CallOutClosedError(InvalidStateError):
    kind = "CallOutClosed"


class IncidentClosedError(InvalidStateError):
    kind = "IncidentClosed"


class MissionClosedError(InvalidStateError):
    kind = "MissionClosed"


class ConflictError(CoordinationError):
    """Concurrent write the store could not resolve."""

    kind = "Conflict"


class ResourceAlreadyAssignedError(ConflictError):
    """Resource name already holds a live assignment on the incident."""

    kind = "ResourceAlreadyAssigned"


class ValidationFailedError(CoordinationError):
    """Malformed or missing input the request schema could not catch."""

    kind = "ValidationError"
