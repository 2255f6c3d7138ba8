class OrderServiceError(Exception):
    """Base for failures rendered as JSON ``{"detail": ...}`` by the app."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StoreError(OrderServiceError):
    """The database rejected a read or write; the session has been rolled back."""

    status_code = 500


class PaymentError(OrderServiceError):
    status_code = 400


class PaymentProcessorError(PaymentError):
    """The processor could not be reached or refused the request."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
