"""Tests for bearer token issuance, rotation and revocation."""

import asyncio

import jwt
import pytest
from sqlalchemy import func, select

from ledgergate.config.settings import settings
from ledgergate.database.client import session_scope
from ledgergate.features.auth.exceptions import InvalidRefreshTokenException
from ledgergate.features.auth.models import AccessToken, OAuthApplication
from ledgergate.features.auth.service import TokenService
from ledgergate.features.auth.tokens import decode_access_token, token_digest
from ledgergate.features.device.models import Device
from ledgergate.features.device.schemas import DeviceInfo
from ledgergate.features.device.service import DeviceService
from ledgergate.features.user.models import User
from ledgergate.shared.errors.exceptions import BadRequestException


async def get_pair(session, access_token: str) -> AccessToken:
    stmt = (
        select(AccessToken)
        .where(AccessToken.token_digest == token_digest(access_token))
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).scalar_one()


async def count_active_pairs(session, application_id: int) -> int:
    stmt = (
        select(func.count())
        .select_from(AccessToken)
        .where(AccessToken.application_id == application_id, AccessToken.revoked_at.is_(None))
    )
    return (await session.execute(stmt)).scalar_one()


@pytest.fixture
def register_device(session, device_payload):
    async def _register(user, device_id="device-a"):
        device = await DeviceService.upsert(session, user, DeviceInfo(**device_payload(device_id)))
        await session.commit()
        return device

    return _register


class TestIssueTokens:
    async def test_issues_pair_for_device(self, session, make_user, register_device):
        user = await make_user()
        device = await register_device(user)

        tokens = await TokenService.issue_tokens(session, user, device)
        await session.commit()

        assert tokens.token_type == "Bearer"
        assert tokens.expires_in == settings.access_token_expire_seconds
        assert tokens.access_token != tokens.refresh_token

        pair = await get_pair(session, tokens.access_token)
        assert pair.resource_owner_id == user.id
        assert pair.scopes == ["read_write"]
        assert pair.refresh_token_digest == token_digest(tokens.refresh_token)
        assert pair.expires_in == settings.access_token_expire_seconds
        assert pair.is_active()

    async def test_access_token_is_signed_for_user(self, session, make_user, register_device):
        user = await make_user()
        device = await register_device(user)

        tokens = await TokenService.issue_tokens(session, user, device)

        payload = decode_access_token(tokens.access_token)
        assert payload["sub"] == str(user.id)
        assert payload["type"] == "access"

    async def test_token_values_are_not_stored(self, session, make_user, register_device):
        user = await make_user()
        device = await register_device(user)

        tokens = await TokenService.issue_tokens(session, user, device)
        await session.commit()

        pair = await get_pair(session, tokens.access_token)
        assert tokens.access_token not in (pair.token_digest, pair.refresh_token_digest)
        assert tokens.refresh_token not in (pair.token_digest, pair.refresh_token_digest)

    async def test_creates_one_client_per_device(self, session, make_user, register_device):
        user = await make_user()
        device = await register_device(user)

        await TokenService.issue_tokens(session, user, device)
        await TokenService.issue_tokens(session, user, device)
        await session.commit()

        stmt = select(func.count()).select_from(OAuthApplication).where(OAuthApplication.device_id == device.id)
        assert (await session.execute(stmt)).scalar_one() == 1

    async def test_reissue_on_same_device_revokes_previous_pair(self, session, make_user, register_device):
        user = await make_user()
        device = await register_device(user)

        first = await TokenService.issue_tokens(session, user, device)
        second = await TokenService.issue_tokens(session, user, device)
        await session.commit()

        old_pair = await get_pair(session, first.access_token)
        new_pair = await get_pair(session, second.access_token)
        assert old_pair.revoked_at is not None
        assert new_pair.revoked_at is None
        assert await count_active_pairs(session, new_pair.application_id) == 1

    async def test_other_devices_keep_their_pairs(self, session, make_user, register_device):
        user = await make_user()
        phone = await register_device(user, "phone")
        tablet = await register_device(user, "tablet")

        phone_tokens = await TokenService.issue_tokens(session, user, phone)
        tablet_tokens = await TokenService.issue_tokens(session, user, tablet)
        await session.commit()

        assert (await get_pair(session, phone_tokens.access_token)).is_active()
        assert (await get_pair(session, tablet_tokens.access_token)).is_active()


class TestRefreshTokens:
    async def test_rotates_pair(self, session, make_user, make_tokens):
        user = await make_user()
        original = await make_tokens(user)

        rotated = await TokenService.refresh_tokens(session, original.refresh_token)
        await session.commit()

        assert rotated.access_token != original.access_token
        assert rotated.refresh_token != original.refresh_token

        old_pair = await get_pair(session, original.access_token)
        new_pair = await get_pair(session, rotated.access_token)
        assert old_pair.revoked_at is not None
        assert new_pair.is_active()
        assert new_pair.application_id == old_pair.application_id
        assert new_pair.resource_owner_id == user.id
        assert new_pair.scopes == old_pair.scopes

    async def test_refresh_token_is_single_use(self, session, make_user, make_tokens):
        user = await make_user()
        original = await make_tokens(user)

        await TokenService.refresh_tokens(session, original.refresh_token)
        await session.commit()

        with pytest.raises(InvalidRefreshTokenException):
            await TokenService.refresh_tokens(session, original.refresh_token)

    async def test_unknown_refresh_token(self, session):
        with pytest.raises(InvalidRefreshTokenException):
            await TokenService.refresh_tokens(session, "not-a-real-token")

    async def test_missing_refresh_token(self, session):
        with pytest.raises(BadRequestException):
            await TokenService.refresh_tokens(session, None)
        with pytest.raises(BadRequestException):
            await TokenService.refresh_tokens(session, "")

    async def test_refresh_of_superseded_pair_fails(self, session, make_user, make_tokens):
        user = await make_user()
        first = await make_tokens(user)
        await make_tokens(user)  # new login on the same device

        with pytest.raises(InvalidRefreshTokenException):
            await TokenService.refresh_tokens(session, first.refresh_token)

    async def test_updates_device_last_seen(self, session, make_user, make_tokens, device_payload):
        user = await make_user()
        tokens = await make_tokens(user, "device-a")
        device = (await session.execute(select(Device).where(Device.user_id == user.id))).scalar_one()
        seen_before = device.last_seen_at

        await TokenService.refresh_tokens(
            session, tokens.refresh_token, DeviceInfo(**device_payload("device-a", app_version="9.9.9"))
        )
        await session.commit()
        await session.refresh(device)

        assert device.last_seen_at >= seen_before
        assert device.app_version == "9.9.9"

    async def test_concurrent_refresh_has_exactly_one_winner(self, session_factory, make_user, make_tokens):
        user = await make_user()
        tokens = await make_tokens(user)

        async def refresh():
            try:
                async with session_scope(session_factory) as race_session:
                    return await TokenService.refresh_tokens(race_session, tokens.refresh_token)
            except InvalidRefreshTokenException as exc:
                return exc

        results = await asyncio.gather(refresh(), refresh())

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, InvalidRefreshTokenException)]
        assert len(winners) == 1
        assert len(losers) == 1

        async with session_factory() as check_session:
            pair = await get_pair(check_session, winners[0].access_token)
            assert pair.is_active()
            assert await count_active_pairs(check_session, pair.application_id) == 1


class TestIssueRaces:
    async def test_issue_retries_when_a_conflicting_pair_appears(
        self, session, make_user, make_tokens, monkeypatch
    ):
        user = await make_user()
        first = await make_tokens(user)
        device = await DeviceService.get_device(session, user.id, "device-a")
        revoke_application_tokens = TokenService.revoke_application_tokens
        calls = []

        async def miss_first_revoke(revoke_session, application_id, now):
            calls.append(application_id)
            # The first attempt does not see the pair issued by a concurrent request
            if len(calls) == 1:
                return 0
            return await revoke_application_tokens(revoke_session, application_id, now)

        monkeypatch.setattr(TokenService, "revoke_application_tokens", staticmethod(miss_first_revoke))

        tokens = await TokenService.issue_tokens(session, user, device)
        await session.commit()

        assert len(calls) == 2
        assert (await get_pair(session, first.access_token)).revoked_at is not None
        pair = await get_pair(session, tokens.access_token)
        assert pair.is_active()
        assert await count_active_pairs(session, pair.application_id) == 1

    async def test_concurrent_issue_for_one_device_leaves_one_active_pair(
        self, serial_session_factory, session_factory, make_user, register_device
    ):
        user = await make_user()
        await register_device(user)

        async def issue():
            async with session_scope(serial_session_factory) as race_session:
                race_user = await race_session.get(User, user.id)
                race_device = await DeviceService.get_device(race_session, user.id, "device-a")
                return await TokenService.issue_tokens(race_session, race_user, race_device)

        results = await asyncio.gather(issue(), issue(), issue())

        async with session_factory() as check_session:
            applications = (await check_session.execute(select(OAuthApplication))).scalars().all()
            assert len(applications) == 1
            assert await count_active_pairs(check_session, applications[0].id) == 1
            active = [r for r in results if (await get_pair(check_session, r.access_token)).revoked_at is None]
            assert len(active) == 1


class TestRevoke:
    async def test_revoke_is_idempotent(self, session, make_user, make_tokens):
        user = await make_user()
        tokens = await make_tokens(user)
        pair = await get_pair(session, tokens.access_token)

        assert await TokenService.revoke_token(session, pair) is True
        revoked_at = pair.revoked_at
        assert await TokenService.revoke_token(session, pair) is False
        assert pair.revoked_at == revoked_at

    async def test_revoke_refresh_token_only_for_owner(self, session, make_user, make_tokens):
        owner = await make_user()
        stranger = await make_user()
        tokens = await make_tokens(owner)

        assert await TokenService.revoke_refresh_token(session, stranger, tokens.refresh_token) is False
        assert await TokenService.revoke_refresh_token(session, owner, tokens.refresh_token) is True
        assert await TokenService.revoke_refresh_token(session, owner, tokens.refresh_token) is False


class TestAccessTokenCodec:
    def test_rejects_tampered_token(self):
        token = jwt.encode({"sub": "1", "jti": "x", "type": "access", "exp": 4102444800}, "wrong-key", "HS256")
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_rejects_other_token_types(self):
        token = jwt.encode(
            {"sub": "1", "jti": "x", "type": "refresh", "exp": 4102444800},
            settings.secret_key,
            settings.jwt_algorithm,
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)
