"""Tests for per-category personal data collection."""

import uuid
from datetime import datetime, timedelta, timezone

from src.data_rights.collector import ACTIVITY_MAX_ROWS, UserDataCollector
from src.models.audit import AuditLog
from src.models.identity import Identity
from tests.conftest import result_with

NOW = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _identity(user_id: uuid.UUID, **overrides) -> Identity:
    values = dict(
        id=uuid.uuid4(),
        user_id=user_id,
        solana_public_key="7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
        did="did:sol:7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU",
        verification_bitmap=0b101,
        reputation_score=640,
        staked_amount=2_000_000_000,
        metadata_uri=None,
        created_at=datetime(2026, 1, 6, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return Identity(**values)


class TestUserDataCollector:
    async def test_profile(self, mock_db_session, test_user):
        mock_db_session.execute.return_value = result_with(one=test_user)

        data = await UserDataCollector(mock_db_session).collect(test_user.id, ["profile"], now=NOW)

        assert data["profile"]["email"] == "principal@example.com"
        assert data["profile"]["status"] == "active"
        assert data["profile"]["id"] == str(test_user.id)

    async def test_missing_profile_is_none(self, mock_db_session, test_user_id):
        mock_db_session.execute.return_value = result_with(one=None)

        data = await UserDataCollector(mock_db_session).collect(test_user_id, ["profile"], now=NOW)

        assert data == {"profile": None}

    async def test_identity_categories_share_one_query(self, mock_db_session, test_user_id):
        identity = _identity(test_user_id)
        mock_db_session.execute.return_value = result_with(many=[identity])

        data = await UserDataCollector(mock_db_session).collect(
            test_user_id, ["staking", "identity", "reputation"], now=NOW
        )

        assert mock_db_session.execute.await_count == 1
        assert data["identity"][0]["did"] == identity.did
        assert data["identity"][0]["verification_bitmap"] == 0b101
        assert data["reputation"] == [
            {"identity_id": str(identity.id), "did": identity.did, "reputation_score": 640}
        ]
        assert data["staking"][0]["staked_amount"] == 2_000_000_000

    async def test_keys_follow_category_order(self, mock_db_session, test_user_id):
        mock_db_session.execute.return_value = result_with()

        data = await UserDataCollector(mock_db_session).collect(
            test_user_id, ["pii", "consents", "credentials"], now=NOW
        )

        assert list(data) == ["credentials", "consents", "pii"]

    async def test_pii_reports_types_only(self, mock_db_session, test_user_id):
        stored = datetime(2026, 1, 7, tzinfo=timezone.utc)
        mock_db_session.execute.return_value = result_with(rows=[("aadhaar", stored), ("pan", stored)])

        data = await UserDataCollector(mock_db_session).collect(test_user_id, ["pii"], now=NOW)

        assert data["pii"] == [
            {"pii_type": "aadhaar", "stored_at": stored.isoformat()},
            {"pii_type": "pan", "stored_at": stored.isoformat()},
        ]
        selected = mock_db_session.execute.await_args.args[0].selected_columns
        assert [c.name for c in selected] == ["pii_type", "created_at"]

    async def test_activity_window_and_cap(self, mock_db_session, test_user_id):
        entry = AuditLog(
            id=uuid.uuid4(),
            user_id=test_user_id,
            action="data_rights.access_request",
            resource="data_rights_request",
            resource_id="ACCESS-1-ABCDEF",
            status="success",
            ip_address="10.0.0.1",
            created_at=NOW - timedelta(days=1),
        )
        mock_db_session.execute.return_value = result_with(many=[entry])

        collector = UserDataCollector(mock_db_session, activity_lookback_days=90)
        data = await collector.collect(test_user_id, ["activity"], now=NOW)

        assert data["activity"][0]["action"] == "data_rights.access_request"
        stmt = mock_db_session.execute.await_args.args[0]
        params = stmt.compile().params
        assert NOW - timedelta(days=90) in params.values()
        assert ACTIVITY_MAX_ROWS in params.values()
        assert "ORDER BY audit_logs.created_at DESC" in str(stmt)

    async def test_only_requested_categories_queried(self, mock_db_session, test_user_id):
        mock_db_session.execute.return_value = result_with()

        await UserDataCollector(mock_db_session).collect(test_user_id, ["consents"], now=NOW)

        assert mock_db_session.execute.await_count == 1
