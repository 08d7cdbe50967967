"""Exception hierarchy for pyprocmon."""


class PyprocmonError(Exception):
    """Base class for all pyprocmon errors."""


class ConnectError(PyprocmonError):
    """The notification facility could not be reached."""


class SubscribeError(PyprocmonError):
    """The process-creation subscription could not be registered."""


class StreamDisconnected(PyprocmonError):
    """A live event stream lost its connection to the facility."""


class RecordParseError(PyprocmonError):
    """A raw notification record could not be normalized."""


class ChannelClosed(PyprocmonError):
    """The consumer end of the hand-off channel has been torn down."""


class SubscriptionCancelled(PyprocmonError):
    """Shutdown was requested before a subscription was established."""


class ExhaustedRetries(PyprocmonError):
    """
    Raised when every subscription attempt has failed.

    Attributes:
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Failed to get filtered notification after {attempts} retries.")
        self.attempts = attempts
