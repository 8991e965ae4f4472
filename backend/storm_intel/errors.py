class StormIntelError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500


class InvalidRequestError(StormIntelError):
    status_code = 400


class UpstreamUnavailableError(StormIntelError):
    """The predictive weather source could not be reached at all."""
    status_code = 502


class PushDeliveryError(Exception):
    """A single push delivery failed.

    ``status_code`` is the push service's HTTP status when one was returned.
    """

    TERMINAL_STATUS_CODES = (404, 410)

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_terminal(self) -> bool:
        return self.status_code in self.TERMINAL_STATUS_CODES
