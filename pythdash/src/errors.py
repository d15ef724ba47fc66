"""Error taxonomy shared by the price, oracle, randomness and chat clients.

Library code raises these; the Dashboard and the PricePoller catch them and
turn them into notifications or log lines.
"""


class DashboardError(Exception):
    """Base exception for dashboard operations."""

    pass


class WalletNotConnected(DashboardError):
    """Raised when an operation needs a signing connection and none is available."""

    def __init__(self, message: str = "No signing connection available"):
        super().__init__(message)


class UpstreamUnavailable(DashboardError):
    """Raised when an HTTP service cannot be reached or answers badly.

    :ivar status_code: HTTP status code, or None for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize the upstream error.

        :param message: Error description.
        :param status_code: HTTP status code if the server responded.
        """
        self.status_code = status_code
        if status_code is not None:
            message = f"HTTP {status_code}: {message}"
        super().__init__(message)


class FeedDataMissing(DashboardError):
    """Raised when the price service returns no data for a valid feed id."""

    pass


class StaleOrMissingQuote(DashboardError):
    """Raised when the price contract holds no quote within the age bound."""

    pass


class ChainSubmissionFailed(DashboardError):
    """Raised when a transaction is rejected, reverts or cannot be confirmed.

    :ivar reason: Underlying failure description.
    """

    def __init__(self, action: str, reason: object):
        """Initialize the submission error.

        :param action: What was being submitted (e.g., "price update").
        :param reason: Underlying exception or message.
        """
        self.reason = str(reason)
        super().__init__(f"{action} failed: {self.reason}")


class EmptyCompletion(UpstreamUnavailable):
    """Raised when the chat service returns zero choices."""

    def __init__(self, message: str = "No response from chat service"):
        super().__init__(message)
