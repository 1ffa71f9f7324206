"""Broker-level errors raised by the publisher and consumer."""


class BrokerError(Exception):
    """The message broker rejected an operation or is unusable."""


class TransientBrokerError(BrokerError):
    """Channel closed, connection lost or publish not confirmed; safe to try again."""


class MalformedMessage(Exception):
    """A delivery body that cannot be decoded into a known event.

    Redelivering it will never succeed, so consumers dead-letter it at once.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class UnhandledEvent(MalformedMessage):
    """A well-formed event reached a consumer that has no handler for its type."""
