# tests/test_auth_provider.py

from __future__ import annotations

import asyncio
import time

import bcrypt
import pytest

from taskup.auth.provider import LocalAuthProvider
from taskup.core.errors import AuthError, ValidationError


@pytest.mark.asyncio
async def test_register_signs_in_and_notifies(auth: LocalAuthProvider) -> None:
    seen = []
    auth.on_auth_state_changed(seen.append)
    assert seen == [None]

    user = await auth.register("  Alice@Example.com ", "secret-1")

    assert user.email == "alice@example.com"
    assert auth.current_user == user
    assert seen == [None, user]


@pytest.mark.asyncio
async def test_login_logout_roundtrip(auth: LocalAuthProvider) -> None:
    registered = await auth.register("alice@example.com", "secret-1")
    await auth.logout()
    assert auth.current_user is None

    user = await auth.login("ALICE@example.com", "secret-1")
    assert user == registered


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected(auth: LocalAuthProvider) -> None:
    await auth.register("alice@example.com", "secret-1")
    with pytest.raises(AuthError):
        await auth.register("alice@example.com", "another-1")


@pytest.mark.asyncio
async def test_bad_credentials(auth: LocalAuthProvider) -> None:
    await auth.register("alice@example.com", "secret-1")
    await auth.logout()

    with pytest.raises(AuthError):
        await auth.login("alice@example.com", "wrong-password")
    with pytest.raises(AuthError):
        await auth.login("nobody@example.com", "secret-1")
    assert auth.current_user is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password"),
    [
        ("not-an-email", "secret-1"),
        ("", "secret-1"),
        ("alice@example.com", "123"),
        ("alice@example.com", "x" * 73),
    ],
)
async def test_register_validates_input(auth: LocalAuthProvider, email: str, password: str) -> None:
    with pytest.raises(ValidationError):
        await auth.register(email, password)


@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called(auth: LocalAuthProvider) -> None:
    seen = []
    unsubscribe = auth.on_auth_state_changed(seen.append)
    unsubscribe()

    await auth.register("alice@example.com", "secret-1")

    assert seen == [None]


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_sign_in(auth: LocalAuthProvider) -> None:
    def boom(user) -> None:
        if user is not None:
            raise RuntimeError("listener bug")

    seen = []
    auth.on_auth_state_changed(boom)
    auth.on_auth_state_changed(seen.append)

    user = await auth.register("alice@example.com", "secret-1")

    assert auth.current_user == user
    assert seen == [None, user]


@pytest.mark.asyncio
async def test_accounts_persist_across_instances(settings) -> None:
    first = LocalAuthProvider(settings.users_db_path, bcrypt_rounds=4)
    await first.register("alice@example.com", "secret-1")

    second = LocalAuthProvider(settings.users_db_path, bcrypt_rounds=4)
    assert second.current_user is None
    user = await second.login("alice@example.com", "secret-1")
    assert user.email == "alice@example.com"


@pytest.mark.asyncio
async def test_password_hashing_does_not_block_the_loop(auth: LocalAuthProvider, monkeypatch) -> None:
    real_hashpw, real_checkpw = bcrypt.hashpw, bcrypt.checkpw

    def slow_hashpw(password: bytes, salt: bytes) -> bytes:
        time.sleep(0.3)
        return real_hashpw(password, salt)

    def slow_checkpw(password: bytes, hashed: bytes) -> bool:
        time.sleep(0.3)
        return real_checkpw(password, hashed)

    monkeypatch.setattr(bcrypt, "hashpw", slow_hashpw)
    monkeypatch.setattr(bcrypt, "checkpw", slow_checkpw)

    ticks = 0

    async def ticker() -> None:
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    task = asyncio.create_task(ticker())
    try:
        await auth.register("alice@example.com", "secret-1")
        after_register = ticks
        await auth.logout()
        await auth.login("alice@example.com", "secret-1")
    finally:
        task.cancel()

    assert after_register >= 5
    assert ticks - after_register >= 5
