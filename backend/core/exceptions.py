# Domain exceptions raised by crud/services and translated to HTTP responses in the routes.

class BaseAppException(Exception):
    """Base class for errors raised by the domain layer."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

class AuthenticationError(BaseAppException):
    """Raised when a bearer token cannot be verified by any provider."""
    pass

# --- Not found (404) ---
class ResourceNotFoundError(BaseAppException, LookupError):
    pass

class PaymentNotFoundError(ResourceNotFoundError):
    pass

class CourseNotFoundError(ResourceNotFoundError):
    pass

class CertificateNotFoundError(ResourceNotFoundError):
    pass

class SubscriptionNotFoundError(ResourceNotFoundError):
    pass

class LiveClassNotFoundError(ResourceNotFoundError):
    pass

# --- External providers (502) ---
class PaymentGatewayError(BaseAppException):
    """The payment provider rejected the call, was unreachable, or is not configured."""
    def __init__(self, message: str, provider: str = None):
        self.provider = provider
        super().__init__(message)

class PaymentVerificationError(BaseAppException, ValueError):
    """The gateway reported the payment as not successful, or the signature did not match."""
    pass

class MeetingProviderError(BaseAppException):
    """Zoom or Google Calendar rejected the call, was unreachable, or is not configured."""
    def __init__(self, message: str, provider: str = None):
        self.provider = provider
        super().__init__(message)
