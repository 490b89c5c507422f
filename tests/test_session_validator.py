"""Tests for cached, deduplicated session validation."""

import asyncio
from datetime import UTC, datetime, timedelta

from tests.conftest import FakeIdentityGateway, make_profile
from tutoring_center.domain.errors import BackendError
from tutoring_center.services.cache import TimestampedCache
from tutoring_center.services.session_validator import SessionValidator


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def _validator(gateway: FakeIdentityGateway, clock: Clock) -> SessionValidator:
    return SessionValidator(gateway=gateway, cache=TimestampedCache(now=clock))


def test_validate_uses_cache_within_ttl(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    validator = _validator(identity_gateway, Clock())

    async def run():
        return await validator.validate(), await validator.validate()

    first, second = asyncio.run(run())

    assert first is second
    assert first.valid
    assert identity_gateway.session_calls == 1
    assert identity_gateway.rpc_calls == 1


def test_concurrent_validations_share_one_round_trip(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    identity_gateway.delay = 0.01
    validator = _validator(identity_gateway, Clock())

    async def run():
        return await asyncio.gather(*(validator.validate() for _ in range(5)))

    results = asyncio.run(run())

    assert identity_gateway.session_calls == 1
    assert all(result is results[0] for result in results)


def test_force_ttl_still_applies_when_skipping_cache(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    clock = Clock()
    validator = _validator(identity_gateway, clock)

    async def run() -> None:
        await validator.validate()
        await validator.validate(skip_cache=True)
        assert identity_gateway.session_calls == 1
        clock.advance(1.5)
        await validator.validate(skip_cache=True)
        assert identity_gateway.session_calls == 2
        await validator.validate()
        assert identity_gateway.session_calls == 2
        clock.advance(31)
        await validator.validate()
        assert identity_gateway.session_calls == 3

    asyncio.run(run())


def test_failure_falls_back_to_previous_valid_session(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    clock = Clock()
    validator = _validator(identity_gateway, clock)

    async def run():
        await validator.validate()
        clock.advance(31)
        identity_gateway.rpc_errors.append(RuntimeError("connection reset"))
        return await validator.validate()

    result = asyncio.run(run())

    assert result.valid
    assert result.error is None
    assert not result.retryable
    assert identity_gateway.rpc_calls == 2


def test_failure_without_cache_is_retryable(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    identity_gateway.rpc_errors.append(RuntimeError("connection reset"))
    validator = _validator(identity_gateway, Clock())

    result = asyncio.run(validator.validate())

    assert not result.valid
    assert result.retryable
    assert result.error == "connection reset"


def test_profile_lookup_error_returns_partial_result(identity_gateway) -> None:
    identity_gateway.session = {"user": {"id": "user-1", "email": "a@example.com"}}
    identity_gateway.rpc_errors.append(BackendError("permission denied", "42501"))
    validator = _validator(identity_gateway, Clock())

    result = asyncio.run(validator.validate())

    assert result.authenticated
    assert not result.valid
    assert result.profile is None
    assert result.user == {"id": "user-1", "email": "a@example.com"}
    assert result.error == "permission denied"
    assert not result.retryable


def test_no_session_is_signed_out_without_profile_lookup(identity_gateway) -> None:
    validator = _validator(identity_gateway, Clock())

    result = asyncio.run(validator.validate())

    assert not result.authenticated
    assert not result.valid
    assert result.error is None
    assert identity_gateway.rpc_calls == 0


def test_session_backend_error_is_treated_as_signed_out(identity_gateway) -> None:
    identity_gateway.session_error = BackendError("refresh token revoked")
    validator = _validator(identity_gateway, Clock())

    result = asyncio.run(validator.validate())

    assert not result.authenticated
    assert result.is_definitive


def test_inactive_profile_is_not_valid(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile(is_active=False))
    validator = _validator(identity_gateway, Clock())

    result = asyncio.run(validator.validate())

    assert result.authenticated
    assert not result.valid
    assert result.profile_inactive


def test_timeout_reports_timed_out(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    identity_gateway.delay = 0.2
    validator = SessionValidator(gateway=identity_gateway, timeout_seconds=0.01)

    result = asyncio.run(validator.validate())

    assert not result.valid
    assert result.timed_out
    assert result.retryable
    assert result.error == "Session validation timed out"


def test_clear_cache_forces_round_trip(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    validator = _validator(identity_gateway, Clock())

    async def run() -> None:
        await validator.validate()
        validator.clear_cache()
        await validator.validate()

    asyncio.run(run())

    assert identity_gateway.session_calls == 2


def test_clear_cache_detaches_in_flight_validation(identity_gateway) -> None:
    identity_gateway.sign_in_as(make_profile())
    identity_gateway.rpc_delay = 0.02
    validator = _validator(identity_gateway, Clock())

    async def run():
        in_flight = asyncio.create_task(validator.validate())
        await asyncio.sleep(0.005)
        await identity_gateway.sign_out()
        validator.clear_cache()
        old = await in_flight
        cached = validator.cache.peek()
        return old, cached, await validator.validate()

    old, cached, fresh = asyncio.run(run())

    assert old.authenticated
    assert cached is None
    assert not fresh.authenticated
    assert identity_gateway.session_calls == 2
