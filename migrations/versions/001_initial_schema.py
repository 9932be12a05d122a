"""Initial ndrop schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Profiles, events, meetings with chat, notifications and matching batches.
The two partial unique indexes on event_meetings carry the meeting
invariants (one active meeting per pair, one confirmed meeting per slot).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_ACTIVE_MEETING_SQL = "status IN ('pending', 'accepted', 'confirmed')"


def upgrade() -> None:
    # === USER PROFILES ===
    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('nickname', sa.String(100)),
        sa.Column('role', sa.String(100)),
        sa.Column('job_title', sa.String(100)),
        sa.Column('company', sa.String(255)),
        sa.Column('work_field', sa.String(100)),
        sa.Column('interest_keywords', sa.JSON),
        sa.Column('profile_image_url', sa.Text),
        sa.Column('introduction', sa.Text),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_user_profiles_nickname', 'user_profiles', ['nickname'])
    op.create_index('ix_user_profiles_work_field', 'user_profiles', ['work_field'])

    op.create_table(
        'admin_accounts',
        sa.Column('id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # === EVENTS ===
    op.create_table(
        'events',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(255)),
        sa.Column('max_participants', sa.Integer),
        sa.Column('event_code', sa.String(16), nullable=False, unique=True),
        sa.Column('is_public', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('end_date >= start_date', name='chk_events_dates'),
    )
    op.create_index('ix_events_event_code', 'events', ['event_code'])

    op.create_table(
        'event_participants',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('event_id', 'user_id', name='uq_event_participants_event_user'),
        sa.CheckConstraint("status IN ('confirmed', 'canceled')", name='chk_event_participant_status'),
    )
    op.create_index('ix_event_participants_event_id', 'event_participants', ['event_id'])
    op.create_index('ix_event_participants_user_id', 'event_participants', ['user_id'])
    op.create_index('ix_event_participants_event_status', 'event_participants', ['event_id', 'status'])

    op.create_table(
        'event_time_slots',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_blocked', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('end_time > start_time', name='chk_time_slot_range'),
    )
    op.create_index('ix_event_time_slots_event_id', 'event_time_slots', ['event_id'])

    # === MEETINGS ===
    op.create_table(
        'event_meetings',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requester_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('slot_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('event_time_slots.id', ondelete='SET NULL')),
        sa.Column('message', sa.Text),
        sa.Column('pair_key', sa.String(80), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'canceled', 'confirmed')",
            name='chk_event_meeting_status',
        ),
        sa.CheckConstraint('requester_id != receiver_id', name='chk_event_meeting_no_self'),
    )
    op.create_index('ix_event_meetings_event_id', 'event_meetings', ['event_id'])
    op.create_index('ix_event_meetings_requester_id', 'event_meetings', ['requester_id'])
    op.create_index('ix_event_meetings_receiver_id', 'event_meetings', ['receiver_id'])
    op.create_index('ix_event_meetings_status', 'event_meetings', ['status'])
    op.create_index('ix_event_meetings_slot_id', 'event_meetings', ['slot_id'])
    op.create_index('ix_event_meetings_created_at', 'event_meetings', ['created_at'])
    op.create_index(
        'uq_event_meetings_active_pair',
        'event_meetings',
        ['event_id', 'pair_key'],
        unique=True,
        postgresql_where=sa.text(_ACTIVE_MEETING_SQL),
        sqlite_where=sa.text(_ACTIVE_MEETING_SQL),
    )
    op.create_index(
        'uq_event_meetings_confirmed_slot',
        'event_meetings',
        ['slot_id'],
        unique=True,
        postgresql_where=sa.text("status = 'confirmed'"),
        sqlite_where=sa.text("status = 'confirmed'"),
    )

    op.create_table(
        'event_meeting_messages',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('meeting_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('event_meetings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_event_meeting_messages_sender_id', 'event_meeting_messages', ['sender_id'])
    op.create_index(
        'ix_event_meeting_messages_meeting_created', 'event_meeting_messages', ['meeting_id', 'created_at']
    )

    # === NOTIFICATIONS ===
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE')),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('notification_type', sa.String(50), nullable=False),
        sa.Column('target_type', sa.String(30), nullable=False, server_default='specific'),
        sa.Column('target_event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE')),
        sa.Column('related_event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='SET NULL')),
        sa.Column('metadata', sa.JSON),
        sa.Column('sent_by', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='SET NULL')),
        sa.Column('read_at', sa.DateTime(timezone=True)),
        sa.Column('status', sa.String(20), nullable=False, server_default='sent'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "target_type IN ('all', 'specific', 'event_participants')", name='chk_notification_target_type'
        ),
        sa.CheckConstraint(
            "target_type != 'specific' OR user_id IS NOT NULL", name='chk_notification_specific_has_user'
        ),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_target_event_id', 'notifications', ['target_event_id'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index('ix_notifications_user_type', 'notifications', ['user_id', 'notification_type'])

    # === MATCHING ===
    op.create_table(
        'event_matching_configs',
        sa.Column('event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('max_requests_per_user', sa.Integer, nullable=False, server_default='5'),
        sa.Column('scoring_weights', sa.JSON),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('max_requests_per_user >= 1', name='chk_matching_config_max_requests'),
    )

    op.create_table(
        'event_match_recommendations',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('event_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('recommended_user_id', sa.Uuid(as_uuid=True),
                  sa.ForeignKey('user_profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('score', sa.Integer, nullable=False),
        sa.Column('match_reasons', sa.JSON),
        sa.Column('batch_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('user_id != recommended_user_id', name='chk_match_recommendation_no_self'),
    )
    op.create_index('ix_event_match_recommendations_event_id', 'event_match_recommendations', ['event_id'])
    op.create_index('ix_event_match_recommendations_batch_id', 'event_match_recommendations', ['batch_id'])
    op.create_index('ix_match_recommendations_event_user', 'event_match_recommendations', ['event_id', 'user_id'])
    op.create_index('ix_match_recommendations_event_batch', 'event_match_recommendations', ['event_id', 'batch_id'])


def downgrade() -> None:
    op.drop_table('event_match_recommendations')
    op.drop_table('event_matching_configs')
    op.drop_table('notifications')
    op.drop_table('event_meeting_messages')
    op.drop_table('event_meetings')
    op.drop_table('event_time_slots')
    op.drop_table('event_participants')
    op.drop_table('events')
    op.drop_table('admin_accounts')
    op.drop_table('user_profiles')
