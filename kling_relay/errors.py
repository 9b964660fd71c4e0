"""Exception classes used across the service."""


class ServiceError(RuntimeError):
    """Base class for domain-specific exceptions."""


class ConfigurationError(ServiceError):
    """Raised when required credentials or settings are missing."""


class RecordStoreError(ServiceError):
    """Base class for record store failures."""


class NotFoundError(RecordStoreError):
    """Raised when a record does not exist in the store."""


class StoreError(RecordStoreError):
    """Raised on transport or auth failures talking to the store."""


class LifecycleFailure(ServiceError):
    """A terminal job failure.

    ``error_log`` is the text written to the record alongside ``Failed``.
    """

    def __init__(self, error_log: str):
        super().__init__(error_log)
        self.error_log = error_log


class JobValidationError(LifecycleFailure):
    """Raised when the record lacks an input image or a prompt."""


class SubmissionError(LifecycleFailure):
    """Raised when the generation service rejects a submission."""

    def __init__(self, body: str, status_code: int = 0):
        super().__init__(f"API submission failed: {body}")
        self.body = body
        self.status_code = status_code


class RemoteFailure(LifecycleFailure):
    """Raised when the remote job reports ``failed``."""

    def __init__(self, message: str):
        super().__init__(f"Kling AI error: {message}")
        self.message = message


class GenerationTimeoutError(LifecycleFailure):
    """Raised when the poll attempt budget is exhausted."""

    def __init__(self, seconds: int):
        minutes = int(seconds / 60 + 0.5)
        super().__init__(
            f"Video generation timed out after {seconds} seconds (~{minutes} minutes)"
        )
        self.seconds = seconds


class PollTransientError(ServiceError):
    """A single status check failed. The poll loop absorbs these."""


class ArtifactFetchError(ServiceError):
    """Raised when the finished video cannot be downloaded."""
