"""Initial schema for the data rights service.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Adds:
- users                  data principals (anonymised in place on erasure)
- identities             on-chain DID anchors per user
- verification_requests  verification attempts (retained on erasure)
- credentials            verifiable credentials (deleted on erasure)
- encrypted_pii          encrypted PII blobs (deleted on erasure)
- consents               purpose-specific consents (revoked on erasure)
- audit_logs             append-only activity log (retained on erasure)
- data_rights_requests   access/erasure/correction/portability/grievance

Notes:
- No enum types; status values stored as VARCHAR for schema flexibility.
- audit_logs.user_id and data_rights_requests.user_id carry no FK so that
  history outlives the subject row.
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create all tables."""

    # ------------------------------------------------------------------
    # users
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="active"),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # ------------------------------------------------------------------
    # identities
    # ------------------------------------------------------------------
    op.create_table(
        "identities",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("solana_public_key", sa.String(64), nullable=False, unique=True),
        sa.Column("did", sa.String(256), nullable=False, unique=True),
        sa.Column("verification_bitmap", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("reputation_score", sa.Integer(), nullable=False, server_default="500"),
        sa.Column(
            "staked_amount",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Lamports",
        ),
        sa.Column("metadata_uri", sa.String(512), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_identities_user_id", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_identities_user_id", "identities", ["user_id"])

    # ------------------------------------------------------------------
    # identity children: verification_requests, credentials, encrypted_pii
    # ------------------------------------------------------------------
    op.create_table(
        "verification_requests",
        _uuid_pk(),
        sa.Column("identity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("verification_type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["identity_id"],
            ["identities.id"],
            name="fk_verification_requests_identity_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_verification_requests_identity_id", "verification_requests", ["identity_id"]
    )

    op.create_table(
        "credentials",
        _uuid_pk(),
        sa.Column("identity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("credential_id", sa.String(128), nullable=False, unique=True),
        sa.Column("credential_type", sa.String(64), nullable=False),
        sa.Column(
            "issued_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(
            ["identity_id"],
            ["identities.id"],
            name="fk_credentials_identity_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_credentials_identity_id", "credentials", ["identity_id"])

    op.create_table(
        "encrypted_pii",
        _uuid_pk(),
        sa.Column("identity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("pii_type", sa.String(64), nullable=False),
        sa.Column("ciphertext", sa.Text(), nullable=False),
        _created_at(),
        sa.ForeignKeyConstraint(
            ["identity_id"],
            ["identities.id"],
            name="fk_encrypted_pii_identity_id",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_encrypted_pii_identity_id", "encrypted_pii", ["identity_id"])

    # ------------------------------------------------------------------
    # consents
    # ------------------------------------------------------------------
    op.create_table(
        "consents",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("consent_type", sa.String(64), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("data_elements", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_consents_user_id", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_consents_user_id", "consents", ["user_id"])
    op.create_index("ix_consents_user_status", "consents", ["user_id", "status"])

    # ------------------------------------------------------------------
    # audit_logs
    # ------------------------------------------------------------------
    op.create_table(
        "audit_logs",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("resource", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.String(128), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.String(16), nullable=False, server_default="success"),
        sa.Column("error_message", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_user_created", "audit_logs", ["user_id", "created_at"])

    # ------------------------------------------------------------------
    # data_rights_requests
    # ------------------------------------------------------------------
    op.create_table(
        "data_rights_requests",
        sa.Column(
            "id",
            sa.String(64),
            primary_key=True,
            nullable=False,
            comment="<TYPE>-<base36 timestamp>-<random>",
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("request_type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
        sa.Column("categories", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("response_deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_data", postgresql.JSONB, nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
    )
    op.create_index("ix_data_rights_requests_user_id", "data_rights_requests", ["user_id"])
    op.create_index(
        "ix_data_rights_user_submitted", "data_rights_requests", ["user_id", "submitted_at"]
    )
    op.create_index(
        "ix_data_rights_status_deadline",
        "data_rights_requests",
        ["status", "response_deadline"],
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    for table in (
        "data_rights_requests",
        "audit_logs",
        "consents",
        "encrypted_pii",
        "credentials",
        "verification_requests",
        "identities",
        "users",
    ):
        op.drop_table(table)
