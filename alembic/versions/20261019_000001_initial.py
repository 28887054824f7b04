"""Initial schema: agent accounts, reference data, players and the deal pipeline.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from alembic import op  # type: ignore[attr-defined]
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261019_000001"
down_revision = None
branch_labels = None
depends_on = None

# Enum names match SQLModel's defaults (lower-cased class names); members are
# stored by name, which equals their value.
PLAYER_DEAL_STATUS = ("free_agent", "in_negotiation", "signed")
DEAL_STAGE = ("ongoing", "sent", "signed", "not_signed")
PAYMENT_STATUS = ("pending", "paid", "overdue")
REMINDER_TAG = ("general", "deal", "contract", "payment", "player")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _owner() -> sa.Column:
    return sa.Column(
        "user_id", sa.Integer(), sa.ForeignKey("auth_users.id"), nullable=False, index=True
    )


def upgrade() -> None:
    op.create_table(
        "auth_users",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, index=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        *_timestamps(),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_auth_users_email", "auth_users", ["email"], unique=True)

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False, index=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True, index=True),
        sa.Column("ip", sa.String(), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("remember_me", sa.Boolean(), nullable=False, index=True),
    )
    op.create_index("ix_auth_sessions_token_hash", "auth_sessions", ["token_hash"], unique=True)

    op.create_table(
        "calendar_feed_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True, index=True),
    )
    op.create_index(
        "ix_calendar_feed_tokens_token_hash", "calendar_feed_tokens", ["token_hash"], unique=True
    )

    op.create_table(
        "competitions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False, index=True),
        sa.Column("country", sa.String(), nullable=True),
    )
    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False, index=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column(
            "competition_id",
            sa.Integer(),
            sa.ForeignKey("competitions.id"),
            nullable=True,
            index=True,
        ),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False, index=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("position", sa.String(), nullable=True, index=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column(
            "player_deal_status",
            sa.Enum(*PLAYER_DEAL_STATUS, name="playerdealstatus"),
            nullable=False,
            index=True,
        ),
        sa.Column("current_contract_id", sa.Integer(), nullable=True, index=True),
        *_timestamps(),
    )
    op.create_table(
        "prospects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("is_converted", sa.Boolean(), nullable=False, index=True),
        sa.Column(
            "converted_player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "team_deals",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False, index=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False, index=True),
        sa.Column(
            "deal_stage",
            sa.Enum(*DEAL_STAGE, name="dealstage"),
            nullable=False,
            index=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint("player_id", "team_id", name="uq_team_deals_player_team"),
    )
    op.create_table(
        "deal_notes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column(
            "team_deal_id", sa.Integer(), sa.ForeignKey("team_deals.id"), nullable=False, index=True
        ),
        sa.Column("note_text", sa.String(), nullable=False),
        sa.Column(
            "deal_stage_at_time",
            postgresql.ENUM(*DEAL_STAGE, name="dealstage", create_type=False),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
    )

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False, index=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=False, index=True),
        sa.Column(
            "competition_id",
            sa.Integer(),
            sa.ForeignKey("competitions.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("contract_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("contract_start_date", sa.Date(), nullable=False),
        sa.Column("contract_end_date", sa.Date(), nullable=False, index=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, index=True),
        sa.Column("added_retroactively", sa.Boolean(), nullable=False),
        sa.Column("team_deal_id", sa.Integer(), sa.ForeignKey("team_deals.id"), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column(
            "contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=False, index=True
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False, index=True),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*PAYMENT_STATUS, name="paymentstatus"),
            nullable=False,
            index=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "reminders",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True, index=True),
        sa.Column("tag", sa.Enum(*REMINDER_TAG, name="remindertag"), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False, index=True),
        sa.Column("auto_generated", sa.Boolean(), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=True, index=True),
        sa.Column(
            "team_deal_id", sa.Integer(), sa.ForeignKey("team_deals.id"), nullable=True, index=True
        ),
        sa.Column("contract_id", sa.Integer(), sa.ForeignKey("contracts.id"), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        _owner(),
        sa.Column("name", sa.String(), nullable=False, index=True),
        sa.Column("role", sa.String(), nullable=True, index=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("team_id", sa.Integer(), sa.ForeignKey("teams.id"), nullable=True, index=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "contacts",
        "reminders",
        "payments",
        "contracts",
        "deal_notes",
        "team_deals",
        "prospects",
        "players",
        "teams",
        "competitions",
        "calendar_feed_tokens",
        "auth_sessions",
        "auth_users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ("playerdealstatus", "dealstage", "paymentstatus", "remindertag"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
