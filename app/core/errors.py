# app/core/errors.py
"""
Domain errors for the order board.

Only failures that cross the store boundary are exceptions. Malformed
documents are absorbed by the normalizer and illegal transitions are
reported as notices on the transition outcome.
"""


class OrderBoardError(Exception):
    """Base class for order board errors."""


class ExternalWriteFailure(OrderBoardError):
    """
    A status write to the external store failed.

    Covers transport, permission and not-found conditions; the store's
    own error (if any) is chained as __cause__.
    """

    def __init__(self, order_id: str, message: str):
        super().__init__(message)
        self.order_id = order_id


class StatusPreconditionFailed(ExternalWriteFailure):
    """
    The store's current status no longer matches the expected previous
    status, so the write was not applied.
    """

    def __init__(self, order_id: str, expected: str, requested: str):
        super().__init__(
            order_id,
            f"Order {order_id} is no longer '{expected}'; "
            f"refusing to set '{requested}'",
        )
        self.expected = expected
        self.requested = requested


class SubscriptionFailure(OrderBoardError):
    """The live order feed errored; escalated to the application."""
