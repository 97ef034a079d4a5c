"""Unit tests for the per-connection session context."""

import uuid

import pytest
from libs.auth.models import AuthUser
from libs.auth.session import AuthEvent, SessionContext


def _user() -> AuthUser:
    return AuthUser(user_id=str(uuid.uuid4()), email="seller@example.com")


@pytest.mark.unit
def test_new_context_is_loading_without_session():
    context = SessionContext()
    assert context.session is None
    assert context.profile is None
    assert context.loading is True


@pytest.mark.unit
@pytest.mark.asyncio
async def test_listeners_receive_events_in_order():
    context = SessionContext()
    events = []

    def sync_listener(event, state):
        events.append(("sync", event))

    async def async_listener(event, state):
        events.append(("async", event))

    context.subscribe(sync_listener)
    context.subscribe(async_listener)

    user = _user()
    await context.sign_in(user, {"first_name": "Ana"})
    await context.sign_out()

    assert events == [
        ("sync", AuthEvent.SIGNED_IN),
        ("async", AuthEvent.SIGNED_IN),
        ("sync", AuthEvent.SIGNED_OUT),
        ("async", AuthEvent.SIGNED_OUT),
    ]
    assert context.session is None
    assert context.profile is None
    assert context.loading is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    context = SessionContext()
    events = []
    unsubscribe = context.subscribe(lambda event, state: events.append(event))

    unsubscribe()
    unsubscribe()
    await context.sign_in(_user())

    assert events == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_out_without_session_is_silent():
    context = SessionContext()
    events = []
    context.subscribe(lambda event, state: events.append(event))

    await context.sign_out()

    assert events == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_loading_change_only_emits_on_change():
    context = SessionContext()
    events = []
    context.subscribe(lambda event, state: events.append((event, state.loading)))

    await context.set_loading(True)
    await context.set_loading(False)

    assert events == [(AuthEvent.LOADING_CHANGED, False)]


@pytest.mark.unit
def test_auth_user_names_from_metadata():
    user = AuthUser(
        sub="abc", email="a@example.com", user_metadata={"first_name": "Ana", "last_name": "M"}
    )
    assert user.user_id == "abc"
    assert user.first_name == "Ana"
