"""Custom exceptions for the table ordering application."""


class TableOrdersError(Exception):
    """Base exception for all application errors."""
    kind = 'error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['kind'] = self.kind
        rv['status'] = 'error'
        return rv


class NotFoundError(TableOrdersError):
    """Raised when an entity id does not resolve."""
    kind = 'not_found'

    def __init__(self, entity, entity_id=None, message=None):
        message = message or f"{entity} {entity_id} not found"
        super().__init__(message, 404, {'entity': entity, 'id': entity_id})
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(TableOrdersError):
    """Raised when an operation is incompatible with the current status."""
    kind = 'invalid_state'

    def __init__(self, message, entity=None, entity_id=None, current=None, payload=None):
        rv = {'entity': entity, 'id': entity_id, 'current': current}
        rv.update(payload or {})
        super().__init__(message, 409, rv)
        self.current = current


class InvalidTransitionError(InvalidStateError):
    """Raised when a status change is not an edge of its state machine."""
    kind = 'invalid_transition'

    def __init__(self, machine, current, target, entity_id=None):
        message = f"{machine}: cannot move from '{current}' to '{target}'"
        super().__init__(message, entity=machine, entity_id=entity_id, current=current,
                         payload={'target': target})
        self.target = target


class ForbiddenError(TableOrdersError):
    """Raised when the acting role may not perform the requested change."""
    kind = 'forbidden'

    def __init__(self, message="Not authorized to perform this action", role=None, target=None):
        super().__init__(message, 403, {'role': role, 'target': target})
        self.role = role


class InvalidInputError(TableOrdersError):
    """Raised for missing or out-of-range input values."""
    kind = 'invalid_input'

    def __init__(self, field, message=None):
        super().__init__(message or f"Invalid value for '{field}'", 400, {'field': field})
        self.field = field


class TransactionFailure(TableOrdersError):
    """Raised when an atomic multi-step write could not complete (always rolled back)."""
    kind = 'transaction_failure'

    def __init__(self, operation, detail=None):
        message = f"Transaction '{operation}' failed and was rolled back"
        super().__init__(message, 500, {'operation': operation, 'detail': detail})
        self.operation = operation


class UnauthorizedError(TableOrdersError):
    """Raised when the request carries no valid credentials."""
    kind = 'unauthorized'

    def __init__(self, message="Authentication required"):
        super().__init__(message, 401)


class PaymentError(TableOrdersError):
    """Raised when the payment provider declines or cannot be reached."""
    kind = 'payment_failed'

    def __init__(self, message, session_id=None, reason=None):
        super().__init__(message, 402, {'id': session_id, 'reason': reason})
        self.reason = reason
