class IdentityError(Exception):
    """Base class for errors raised while resolving an identity."""


class IdentityValidationError(IdentityError):
    """Neither email nor phoneNumber was supplied, or a value is malformed."""


class ConstraintError(IdentityError):
    """The store rejected a write that violates a table constraint."""


class StoreError(IdentityError):
    """Connectivity or transaction failure in the contact store."""


class InvariantViolation(IdentityError):
    """A merged group does not have exactly one primary contact."""
