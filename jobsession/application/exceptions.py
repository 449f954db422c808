class JobSessionError(RuntimeError):
    """Base class for every failure a job session can surface."""

    recoverable: bool = True


class GatewayError(JobSessionError):
    """Raised when the Booking Gateway rejects or cannot complete a call."""

    def __init__(self, message: str, operation: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class NotFoundError(GatewayError):
    """Booking (or payout account) cannot be resolved. Fatal to the session."""

    recoverable = False


class UnauthorizedError(GatewayError):
    """Credential missing or expired. Fatal; the user must sign in again."""

    recoverable = False


class ConflictError(GatewayError):
    """Another checkpoint is already recorded server-side."""


class AlreadyCheckedInError(ConflictError):
    pass


class NotCheckedInError(ConflictError):
    pass


class GatewayValidationError(GatewayError):
    """Gateway refused the submitted values."""


class NetworkError(GatewayError):
    """Transient transport or upstream failure. Retry by re-invoking the action."""


class GatewayContractError(GatewayError):
    """Raised when the gateway answers with a payload that violates the booking contract."""

    recoverable = False


class OperationInProgressError(JobSessionError):
    def __init__(self, operation: str, pending: str) -> None:
        super().__init__(f"Cannot start {operation} while {pending} is in progress")
        self.operation = operation
        self.pending = pending


class InvalidTransitionError(JobSessionError):
    """Operation is not valid in the current session state. Nothing was sent."""


class RateBelowMinimumError(JobSessionError):
    def __init__(self, rate: float, min_rate: float) -> None:
        super().__init__(f"Rate {rate:.2f} is below the minimum recommended rate of {min_rate:.2f}")
        self.rate = rate
        self.min_rate = min_rate


class CheckOutBeforeCheckInError(JobSessionError):
    pass


class SessionDisposedError(JobSessionError):
    """Session was torn down; late results are discarded."""

    recoverable = False
