# exceptions raised by the db package; views turn them into notifications


class StoreError(Exception):
    """Base class for every failure the data layer reports on purpose."""


class ValidationError(StoreError, ValueError):
    """Input rejected before anything was written."""


class EmptyCartError(ValidationError):
    pass


class AccessDenied(StoreError):
    """The session may not read or write the requested rows."""


class NotAuthenticated(AccessDenied):
    pass


class RecordNotFound(StoreError):
    pass


class DuplicateRecord(StoreError):
    pass


class InsufficientStock(StoreError):
    def __init__(self, product_name: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock for {product_name}: "
            f"requested {requested}, available {available}."
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available
