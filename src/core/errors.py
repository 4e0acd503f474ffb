"""Error taxonomy shared by the core and the command layer."""

from __future__ import annotations


class BeerscopeError(Exception):
    """Base class for every error raised on purpose by beerscope."""


class ValidationError(BeerscopeError):
    """A request that cannot be honoured; reported back to the requester."""


class AlreadyAssociatedSelf(ValidationError):
    def __init__(self, username: str) -> None:
        super().__init__(f"already associated with {username}")
        self.username = username


class UsernameTaken(ValidationError):
    def __init__(self, username: str) -> None:
        super().__init__(f"{username} is already associated with someone")
        self.username = username


class AlreadyAssociated(UsernameTaken):
    """The local user already holds a different Untappd username."""

    def __init__(self, username: str, current: str) -> None:
        super().__init__(username)
        self.current = current


class UnknownExternalUser(ValidationError):
    def __init__(self, username: str) -> None:
        super().__init__(f"{username} does not exist on Untappd")
        self.username = username


class NotAssociated(ValidationError):
    def __init__(self, who: str) -> None:
        super().__init__(f"{who} is not associated with an Untappd account")
        self.who = who


class UnknownUser(ValidationError):
    def __init__(self, ref: str) -> None:
        super().__init__(f"could not resolve {ref!r} to an Untappd account")
        self.ref = ref


class ExternalServiceError(BeerscopeError):
    """Untappd timed out, failed, or answered with something unusable."""


class StoreError(BeerscopeError):
    """The persistent store could not be read or written."""
