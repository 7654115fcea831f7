"""
Domain errors raised by the queue store and queue manager.

Every error carries a stable ``code``, the HTTP status the API maps it to,
and whether the caller may simply retry the same request.
"""


class QueueError(Exception):
    """Base error for the queue engine."""

    code = "queue_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(QueueError):
    """Malformed input; rejected before any store write."""

    code = "validation_error"
    http_status = 422


class NotFoundError(QueueError):
    """Referenced item or match does not exist."""

    code = "not_found"
    http_status = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InvalidTransitionError(QueueError):
    """Requested state change is not legal from the current state."""

    code = "invalid_transition"
    http_status = 409

    def __init__(self, entity: str, from_state: str, to_state: str) -> None:
        self.entity = entity
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid {entity} transition: {from_state} -> {to_state}")


class ConflictError(QueueError):
    """Optimistic version check lost against a concurrent write."""

    code = "conflict"
    http_status = 409
    retryable = True
