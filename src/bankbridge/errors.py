class BankBridgeError(Exception):
    """Base class for every error raised by bankbridge."""


class ValidationError(BankBridgeError):
    def __init__(self, message: str, missing_fields: list[str] | tuple[str, ...] = ()):
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)


class PipelineStateError(ValidationError):
    """An import pipeline operation was invoked in the wrong state."""


class NotFoundError(BankBridgeError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id


class PersistenceError(BankBridgeError):
    """A persistence backend failed to load or save master data."""
