class PaymentServiceError(Exception):
    """Base error; ``status_code`` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PaymentServiceError):
    status_code = 400


class VerificationFailure(PaymentServiceError):
    status_code = 400


class DomainConflict(PaymentServiceError):
    status_code = 400


class UpstreamFailure(PaymentServiceError):
    status_code = 500


class NotFound(PaymentServiceError):
    status_code = 404
