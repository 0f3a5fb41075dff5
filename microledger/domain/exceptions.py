"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class EntityNotFoundError(DomainException):
    """Referenced entity does not exist"""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTransitionError(DomainException):
    """Installment state machine precondition violated"""

    def __init__(self, current: str, target: str, reason: str | None = None):
        message = f"Cannot move installment from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.target = target


class ConflictError(DomainException):
    """Business rule violation or lost concurrent update; caller may re-read and retry"""

    pass


class ValidationError(DomainException):
    """Malformed or missing input"""

    pass


class PermissionDeniedError(DomainException):
    """Principal lacks the capability for this operation"""

    pass


class NoPendingInstallmentError(DomainException):
    """Borrower has no PENDING installment to collect next"""

    def __init__(self, borrower_id: str):
        super().__init__(f"Borrower {borrower_id} has no pending installment")
        self.borrower_id = borrower_id
