"""Per-connection seller session state.

One ``SessionContext`` is built when a seller connects and lives for that
connection. It holds ``{session, profile, loading}`` and lets collaborators
(the realtime relay lifecycle, for one) react to auth events through
``subscribe``/``unsubscribe`` instead of reading module-level globals.
"""

import enum
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from libs.auth.models import AuthUser
from libs.common.logging import get_logger

logger = get_logger(__name__)


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PROFILE_UPDATED = "PROFILE_UPDATED"
    LOADING_CHANGED = "LOADING_CHANGED"


@dataclass
class SessionState:
    session: Optional[AuthUser] = None
    profile: Optional[dict[str, Any]] = None
    loading: bool = True


Listener = Callable[[AuthEvent, SessionState], Union[None, Awaitable[None]]]


@dataclass
class SessionContext:
    state: SessionState = field(default_factory=SessionState)
    _listeners: list[Listener] = field(default_factory=list)

    @property
    def session(self) -> Optional[AuthUser]:
        return self.state.session

    @property
    def profile(self) -> Optional[dict[str, Any]]:
        return self.state.profile

    @property
    def loading(self) -> bool:
        return self.state.loading

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            result = listener(event, self.state)
            if inspect.isawaitable(result):
                await result

    async def sign_in(self, user: AuthUser, profile: Optional[dict[str, Any]] = None) -> None:
        self.state.session = user
        self.state.profile = profile
        self.state.loading = False
        logger.debug(f"Session started for {user.user_id}")
        await self._emit(AuthEvent.SIGNED_IN)

    async def set_profile(self, profile: Optional[dict[str, Any]]) -> None:
        self.state.profile = profile
        await self._emit(AuthEvent.PROFILE_UPDATED)

    async def set_loading(self, loading: bool) -> None:
        if self.state.loading != loading:
            self.state.loading = loading
            await self._emit(AuthEvent.LOADING_CHANGED)

    async def sign_out(self) -> None:
        if self.state.session is None:
            return
        self.state.session = None
        self.state.profile = None
        self.state.loading = False
        await self._emit(AuthEvent.SIGNED_OUT)
