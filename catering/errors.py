from __future__ import annotations


class ValidationError(ValueError):
    """A precondition was not met. Raised before anything is written."""


class RemoteOperationError(RuntimeError):
    """A read or write against the data store failed."""


class NotFoundError(RemoteOperationError):
    pass


class ConstraintViolation(RemoteOperationError):
    pass
