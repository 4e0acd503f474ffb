"""Chat command routes for beerscope.

Routes are matched against the raw message text; each handler receives the
regex match, who asked, and a responder to answer through. Nothing in here is
Telegram-specific, so the routing and admin gating can be exercised without a
live client.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from adapters.notification_formatting import (
    NO_NEW_CHECKINS,
    NOT_ALLOWED,
    NOT_IMPLEMENTED,
    STORE_DOWN,
    UNTAPPD_DOWN,
    format_announcement,
    format_known,
    format_recent,
)
from adapters.telegram_notifier import display_name_for
from core.announcer import Announcer
from core.errors import (
    AlreadyAssociated,
    AlreadyAssociatedSelf,
    ExternalServiceError,
    NotAssociated,
    StoreError,
    UnknownExternalUser,
    UnknownUser,
    UsernameTaken,
    ValidationError,
)
from core.models import NewCheckin
from core.ports import DirectoryPort
from core.queries import QuerySurface
from core.registry import IdentityRegistry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandRequest:
    """Who sent a command, as seen by the chat transport."""

    sender_id: str
    sender_name: str
    is_admin: bool = False


class Responder(Protocol):
    async def reply(self, text: str) -> None:
        ...

    async def reply_with_mention(self, text: str) -> None:
        ...


Handler = Callable[["re.Match[str]", CommandRequest, Responder], Awaitable[None]]


@dataclass(frozen=True)
class Route:
    pattern: "re.Pattern[str]"
    handler: Handler
    admin_only: bool = False


def describe_error(exc: ValidationError) -> str:
    """User-facing text for a validation error."""

    if isinstance(exc, AlreadyAssociatedSelf):
        return f"You're already associated with {exc.username}."
    if isinstance(exc, AlreadyAssociated):
        return (
            f"You're already associated with {exc.current}. "
            "Forget that one before identifying as someone else."
        )
    if isinstance(exc, UsernameTaken):
        return "That username is already associated with someone!"
    if isinstance(exc, UnknownExternalUser):
        return f"{exc.username} doesn't seem to be an Untappd user."
    if isinstance(exc, NotAssociated):
        return f"{exc.who} isn't associated with Untappd."
    if isinstance(exc, UnknownUser):
        return f"I don't know who {exc.ref} is."
    return str(exc)


class UntappdBot:
    """Binds chat commands to the registry, announcer and query surface."""

    def __init__(
        self,
        registry: IdentityRegistry,
        announcer: Announcer,
        queries: QuerySurface,
        directory: DirectoryPort,
        prefix: str = "untappd",
    ) -> None:
        self._registry = registry
        self._announcer = announcer
        self._queries = queries
        self._directory = directory
        self.routes = self._build_routes(prefix)

    def _build_routes(self, prefix: str) -> list[Route]:
        p = rf"^/?{re.escape(prefix)}\s+"

        def route(pattern: str, handler: Handler, admin_only: bool = False) -> Route:
            return Route(re.compile(pattern, re.IGNORECASE), handler, admin_only)

        return [
            route(p + r"fetch$", self.manual_fetch, admin_only=True),
            route(p + r"identify\s+(\w+)$", self.associate),
            route(r"^i(?: a|['’])m\s+(\w+)\s+on\s+untappd\b", self.associate),
            route(p + r"known$", self.known),
            route(p + r"last(?:\s+(.+?))?\s*$", self.last),
            route(p + r"forget$", self.forget),
            route(p + r"forget\s+(.+?)\s*$", self.forget_other, admin_only=True),
            route(p + r"debug\s+fetch\s+(\w+)$", self.debug_fetch, admin_only=True),
            route(p + r"debug\s+nuke$", self.debug_nuke, admin_only=True),
            route(p + r"check ?in\s+(.+)$", self.checkin),
        ]

    def match(self, text: str) -> Optional[tuple[Route, "re.Match[str]"]]:
        stripped = text.strip()
        for route in self.routes:
            found = route.pattern.match(stripped)
            if found:
                return route, found
        return None

    async def dispatch(self, text: str, request: CommandRequest, responder: Responder) -> bool:
        """Run the first matching route; returns False when nothing matched."""

        matched = self.match(text)
        if matched is None:
            return False
        route, found = matched

        if route.admin_only and not request.is_admin:
            await responder.reply_with_mention(NOT_ALLOWED)
            return True

        try:
            await route.handler(found, request, responder)
        except ValidationError as exc:
            LOGGER.debug("Rejected %r from %s: %s", text, request.sender_id, exc)
            await responder.reply_with_mention(describe_error(exc))
        except ExternalServiceError as exc:
            LOGGER.info("Untappd unavailable for %r: %s", text, exc)
            await responder.reply(UNTAPPD_DOWN)
        except StoreError:
            LOGGER.exception("Store failure while handling %r", text)
            await responder.reply(STORE_DOWN)
        return True

    async def _reply_checkins(self, fetched: list[NewCheckin], responder: Responder) -> None:
        if not fetched:
            await responder.reply(NO_NEW_CHECKINS)
            return
        lines = []
        for item in fetched:
            name = await display_name_for(self._directory, item)
            lines.append(format_announcement(name, item.checkin))
        await responder.reply("\n".join(lines))

    # Route methods

    async def manual_fetch(self, match, request: CommandRequest, responder: Responder) -> None:
        await self._reply_checkins(await self._announcer.run_now(), responder)

    async def associate(self, match, request: CommandRequest, responder: Responder) -> None:
        username = match.group(1)
        association = await self._registry.associate(request.sender_id, username)
        await responder.reply_with_mention(f"ok {association.external_username}")

    async def known(self, match, request: CommandRequest, responder: Responder) -> None:
        await responder.reply(format_known(await self._queries.known_users()))

    async def last(self, match, request: CommandRequest, responder: Responder) -> None:
        username, checkins = await self._queries.recent_checkins(
            match.group(1), requester_id=request.sender_id
        )
        await responder.reply(format_recent(username, checkins))

    async def forget(self, match, request: CommandRequest, responder: Responder) -> None:
        try:
            await self._registry.forget(request.sender_id)
        except NotAssociated:
            await responder.reply_with_mention("You weren't associated with Untappd.")
            return
        await responder.reply_with_mention("You've been disassociated with Untappd")

    async def forget_other(self, match, request: CommandRequest, responder: Responder) -> None:
        ref = match.group(1)
        username = ref if self._registry.is_registered(ref) else None
        if username is None:
            local_user_id = await self._directory.fuzzy_find(ref)
            if local_user_id is None:
                raise UnknownUser(ref)
            username = self._registry.lookup(local_user_id)
            if username is None:
                raise NotAssociated(ref)
        await self._registry.forget_by_username(username)
        await responder.reply_with_mention(f"{ref} ({username}) has been disassociated with Untappd")

    async def debug_fetch(self, match, request: CommandRequest, responder: Responder) -> None:
        username = match.group(1)
        local_user_id = self._registry.owner_of(username)
        if local_user_id is None:
            raise NotAssociated(username)
        fetched = await self._announcer.debug_fetch(username, local_user_id=local_user_id)
        await self._reply_checkins(fetched, responder)

    async def debug_nuke(self, match, request: CommandRequest, responder: Responder) -> None:
        removed = await self._registry.reset_all()
        await responder.reply_with_mention(f"Forgot {removed} Untappd users.")

    async def checkin(self, match, request: CommandRequest, responder: Responder) -> None:
        # Checking people in needs user OAuth tokens, which the bot never holds.
        await responder.reply_with_mention(NOT_IMPLEMENTED)
