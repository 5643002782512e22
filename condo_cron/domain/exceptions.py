"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class LedgerAPIError(DomainException):
    """Payment provider returned an error, timed out, or sent a malformed body"""

    pass


class ChannelSendError(DomainException):
    """A notification could not be delivered through its channel"""

    pass


class ChannelNotConfiguredError(ChannelSendError):
    """The channel has no credentials in this environment"""

    pass


class UnknownChannelError(ChannelSendError):
    """The notification names a channel with no registered sender"""

    pass


class CandidateFetchError(DomainException):
    """A job could not enumerate the records it is supposed to process"""

    def __init__(self, job: str, reason: str):
        self.job = job
        self.reason = reason
        super().__init__(f"{job}: could not fetch candidates: {reason}")


class UnauthorizedTriggerError(DomainException):
    """Trigger call did not present the configured shared secret"""

    pass
