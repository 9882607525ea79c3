"""Item catalog exceptions."""

from errors import InternalError, NotFoundError, ValidationError, ConflictError

class ItemError(InternalError):
    """Item operation failed."""
    pass

class ItemNotFoundError(ItemError, NotFoundError):
    """Item not found."""
    pass

class InvalidItemError(ItemError, ValidationError):
    """Invalid item data."""
    pass

class ItemInUseError(ItemError, ConflictError):
    """Item is part of an order and cannot be deleted."""
    pass

class InvalidItemStatusError(ItemError, ConflictError):
    """Invalid item status change."""
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change item status from {current} to {requested}")

class ItemReservedError(ItemError, ConflictError):
    """Item is held by an open order."""
    pass

__all__ = [
    'ItemError',
    'ItemNotFoundError',
    'InvalidItemError',
    'ItemInUseError',
    'InvalidItemStatusError',
    'ItemReservedError'
]
