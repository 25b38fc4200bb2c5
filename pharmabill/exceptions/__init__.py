"""Custom exceptions for the PharmaBill application."""


class PharmaError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(PharmaError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class NotFoundError(PharmaError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class ValidationError(BusinessLogicError):
    """Raised when a draft or request is incomplete; carries every cause found."""
    def __init__(self, causes, message=None):
        if isinstance(causes, str):
            causes = [causes]
        self.causes = list(causes)
        message = message or '; '.join(self.causes)
        super().__init__(message, status_code=422, payload={'causes': self.causes})


def _fmt_qty(value):
    return f"{int(value)}" if value % 1 == 0 else f"{value:.2f}".rstrip('0').rstrip('.')


class OutOfStockError(BusinessLogicError):
    """Raised when a product has no available stock at all."""
    def __init__(self, product_name):
        self.product_name = product_name
        super().__init__(
            f"{product_name} is out of stock",
            status_code=409,
            payload={'product': product_name}
        )


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, product_name, required, available):
        self.product_name = product_name
        self.required = required
        self.available = available
        message = (
            f"Insufficient stock for {product_name}: "
            f"requested {_fmt_qty(required)}, available {_fmt_qty(available)}"
        )
        super().__init__(
            message,
            status_code=409,
            payload={'product': product_name, 'requested': int(required), 'available': int(available)}
        )


class ConcurrencyConflictError(PharmaError):
    """Raised when bill-number allocation or stock deduction lost a race."""
    def __init__(self, message="Concurrent update detected, please retry"):
        super().__init__(message, 409)
