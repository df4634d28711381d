"""
Tests for the access grant ledger.

Core rule: at most one active grant per consultation, expiry evaluated at read time.
"""

import pytest

from lexaccess.access import AccessGrantLedger
from lexaccess.core.errors import ConflictError, NotFoundError, ValidationError
from lexaccess.core.models import AccessKind
from lexaccess.storage import DuplicateKeyError


@pytest.fixture
async def parties(client_profile, advocate_profile):
    return client_profile, advocate_profile


async def grant(ledger, consultation_id="consult_1", access_kind="video", payment_id="pay_1"):
    return await ledger.grant(
        consultation_id=consultation_id,
        client_id="user_client",
        advocate_id="user_advocate",
        access_kind=access_kind,
        payment_id=payment_id,
    )


# =============================================================================
# Grant
# =============================================================================


class TestGrant:
    async def test_creates_24_hour_grant(self, ledger, parties, clock):
        result = await grant(ledger)

        assert result.already_granted is False
        assert result.message == "Access granted"
        assert result.grant.granted_at == clock.now
        assert (result.grant.expires_at - result.grant.granted_at).total_seconds() == 24 * 60 * 60
        assert result.grant.access_kind == AccessKind.VIDEO
        assert result.grant.is_active

    async def test_second_grant_returns_existing(self, ledger, parties, storage):
        first = await grant(ledger)
        second = await grant(ledger, access_kind="chat", payment_id="pay_2")

        assert second.already_granted is True
        assert second.message == "Access already granted"
        assert second.grant.id == first.grant.id
        assert second.grant.access_kind == AccessKind.VIDEO
        assert second.grant.payment_id == "pay_1"

    async def test_lost_race_returns_winner(self, storage, parties, clock):
        """Both callers see no grant; the loser hits the unique index and re-reads."""
        ledger = AccessGrantLedger(storage.grants, clock=clock)
        winner = await grant(ledger)

        real_find_active = storage.grants.find_active
        calls = []

        async def stale_find_active(consultation_id):
            calls.append(consultation_id)
            if len(calls) == 1:
                return None
            return await real_find_active(consultation_id)

        storage.grants.find_active = stale_find_active
        result = await grant(ledger, payment_id="pay_2")

        assert result.already_granted is True
        assert result.grant.id == winner.grant.id
        assert len(calls) == 2

    async def test_endless_contention_gives_up(self, storage, parties, clock):
        ledger = AccessGrantLedger(storage.grants, clock=clock)
        await grant(ledger)

        async def always_stale(consultation_id):
            return None

        storage.grants.find_active = always_stale

        with pytest.raises(ConflictError) as exc_info:
            await grant(ledger, payment_id="pay_2")
        assert exc_info.value.status_code == 409
        assert "consult_1" in exc_info.value.detail
        assert "consult_1" not in exc_info.value.public_message

    @pytest.mark.parametrize("client_id, advocate_id", [
        ("user_client", "user_nobody"),
        ("user_nobody", "user_advocate"),
    ])
    async def test_unknown_party_is_not_found(self, ledger, parties, storage, client_id, advocate_id):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.grant(
                consultation_id="consult_1",
                client_id=client_id,
                advocate_id=advocate_id,
                access_kind="video",
                payment_id="pay_1",
            )
        assert exc_info.value.status_code == 404
        assert await storage.grants.find_active("consult_1") is None

    async def test_store_rejects_second_active_grant(self, ledger, parties, storage):
        first = await grant(ledger)
        duplicate = first.grant.model_copy(update={"id": "access_duplicate"})

        with pytest.raises(DuplicateKeyError):
            await storage.grants.insert_active(duplicate)

    async def test_separate_consultations_are_independent(self, ledger, parties):
        a = await grant(ledger, consultation_id="consult_a")
        b = await grant(ledger, consultation_id="consult_b")

        assert a.grant.id != b.grant.id
        assert not a.already_granted and not b.already_granted

    async def test_regrant_after_lapse(self, ledger, parties, storage, clock):
        first = await grant(ledger)
        clock.advance(hours=25)

        second = await grant(ledger, payment_id="pay_2")

        assert second.already_granted is False
        assert second.grant.id != first.grant.id
        old = await storage.grants.get(first.grant.id)
        assert old is not None and old.is_active is False
        assert (await storage.grants.find_active("consult_1")).id == second.grant.id

    @pytest.mark.parametrize("missing", ["consultation_id", "client_id", "advocate_id", "access_kind", "payment_id"])
    async def test_missing_field(self, ledger, missing):
        fields = {
            "consultation_id": "consult_1",
            "client_id": "user_client",
            "advocate_id": "user_advocate",
            "access_kind": "video",
            "payment_id": "pay_1",
        }
        fields[missing] = ""

        with pytest.raises(ValidationError) as exc_info:
            await ledger.grant(**fields)
        assert exc_info.value.missing_fields == [missing]

    async def test_unknown_access_kind(self, ledger):
        with pytest.raises(ValidationError):
            await grant(ledger, access_kind="telepathy")


# =============================================================================
# Check access
# =============================================================================


class TestCheckAccess:
    async def test_live_grant(self, ledger, parties, clock):
        created = await grant(ledger)
        clock.advance(hours=1)

        result = await ledger.check_access("consult_1", "user_client")

        assert result.has_access is True
        assert result.grant.id == created.grant.id
        assert result.time_remaining_ms == 23 * 60 * 60 * 1000

    async def test_no_grant(self, ledger, parties):
        result = await ledger.check_access("consult_1", "user_client")
        assert result.has_access is False
        assert result.to_response() == {"hasAccess": False}

    async def test_other_client(self, ledger, parties):
        await grant(ledger)
        result = await ledger.check_access("consult_1", "user_advocate")
        assert result.has_access is False

    async def test_lapsed_grant_reports_no_access_but_record_remains(self, ledger, parties, storage, clock):
        created = await grant(ledger)
        clock.advance(hours=24, seconds=1)

        result = await ledger.check_access("consult_1", "user_client")

        assert result.has_access is False
        assert result.grant is None
        record = await storage.grants.get(created.grant.id)
        assert record is not None
        assert record.is_active is True

    async def test_exactly_at_expiry_is_lapsed(self, ledger, parties, clock):
        await grant(ledger)
        clock.advance(hours=24)

        assert (await ledger.check_access("consult_1", "user_client")).has_access is False

    async def test_response_shape(self, ledger, parties):
        await grant(ledger)
        body = (await ledger.check_access("consult_1", "user_client")).to_response()

        assert body["hasAccess"] is True
        assert body["timeRemainingMs"] == 24 * 60 * 60 * 1000
        assert body["grant"]["consultationId"] == "consult_1"
        assert body["grant"]["accessType"] == "video"
        assert body["grant"]["isActive"] is True

    async def test_missing_ids(self, ledger):
        with pytest.raises(ValidationError):
            await ledger.check_access("", "user_client")
