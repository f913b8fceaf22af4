"""Initial routing schema: tenants, extensions, ring groups, conference rooms,
business hours, IVR menus, DID numbers, outbound whitelists and the fallback
lock table.

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('sip_domain', sa.String(length=255), nullable=True),
        sa.Column('webhook_base_url', sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_tenants_status'), 'tenants', ['status'])

    op.create_table(
        'extensions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('extension_number', sa.String(length=20), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('configuration', sa.JSON(), nullable=True),
        sa.Column('service_url', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'extension_number', name='uq_tenant_extension_number'),
    )
    op.create_index(op.f('ix_extensions_tenant_id'), 'extensions', ['tenant_id'])
    op.create_index(op.f('ix_extensions_extension_number'), 'extensions', ['extension_number'])
    op.create_index(op.f('ix_extensions_status'), 'extensions', ['status'])

    op.create_table(
        'ring_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('strategy', sa.String(length=20), nullable=False),
        sa.Column('timeout', sa.Integer(), nullable=False),
        sa.Column('ring_turns', sa.Integer(), nullable=False),
        sa.Column('fallback_action', sa.String(length=20), nullable=True),
        sa.Column('fallback_extension_id', sa.Integer(),
                  sa.ForeignKey('extensions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('fallback_message', sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_ring_groups_tenant_id'), 'ring_groups', ['tenant_id'])
    op.create_index(op.f('ix_ring_groups_status'), 'ring_groups', ['status'])

    op.create_table(
        'ring_group_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ring_group_id', sa.Integer(), sa.ForeignKey('ring_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('extension_id', sa.Integer(), sa.ForeignKey('extensions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.UniqueConstraint('ring_group_id', 'extension_id', name='uq_ring_group_member'),
    )
    op.create_index(op.f('ix_ring_group_members_ring_group_id'), 'ring_group_members', ['ring_group_id'])
    op.create_index(op.f('ix_ring_group_members_extension_id'), 'ring_group_members', ['extension_id'])

    op.create_table(
        'conference_rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('max_participants', sa.Integer(), nullable=False),
        sa.Column('mute_on_entry', sa.Boolean(), nullable=False),
        sa.Column('announce_join_leave', sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f('ix_conference_rooms_tenant_id'), 'conference_rooms', ['tenant_id'])

    op.create_table(
        'business_hours_schedules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('open_hours_action_type', sa.String(length=20), nullable=False),
        sa.Column('open_hours_target_id', sa.String(length=50), nullable=True),
        sa.Column('closed_hours_action_type', sa.String(length=20), nullable=False),
        sa.Column('closed_hours_target_id', sa.String(length=50), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_business_hours_schedules_tenant_id'), 'business_hours_schedules', ['tenant_id'])
    op.create_index(op.f('ix_business_hours_schedules_status'), 'business_hours_schedules', ['status'])

    op.create_table(
        'business_hours_schedule_days',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_id', sa.Integer(),
                  sa.ForeignKey('business_hours_schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('schedule_id', 'day_of_week', name='uq_schedule_day'),
    )
    op.create_index(op.f('ix_business_hours_schedule_days_schedule_id'), 'business_hours_schedule_days', ['schedule_id'])

    op.create_table(
        'business_hours_time_ranges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('day_id', sa.Integer(),
                  sa.ForeignKey('business_hours_schedule_days.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.String(length=8), nullable=False),
        sa.Column('end_time', sa.String(length=8), nullable=False),
    )
    op.create_index(op.f('ix_business_hours_time_ranges_day_id'), 'business_hours_time_ranges', ['day_id'])

    op.create_table(
        'business_hours_exceptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('schedule_id', sa.Integer(),
                  sa.ForeignKey('business_hours_schedules.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.UniqueConstraint('schedule_id', 'date', name='uq_schedule_exception_date'),
    )
    op.create_index(op.f('ix_business_hours_exceptions_schedule_id'), 'business_hours_exceptions', ['schedule_id'])

    op.create_table(
        'business_hours_exception_time_ranges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('exception_id', sa.Integer(),
                  sa.ForeignKey('business_hours_exceptions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.String(length=8), nullable=False),
        sa.Column('end_time', sa.String(length=8), nullable=False),
    )
    op.create_index(op.f('ix_business_hours_exception_time_ranges_exception_id'),
                    'business_hours_exception_time_ranges', ['exception_id'])

    op.create_table(
        'ivr_menus',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('max_turns', sa.Integer(), nullable=False),
        sa.Column('audio_file_path', sa.String(length=500), nullable=True),
        sa.Column('tts_text', sa.Text(), nullable=True),
        sa.Column('tts_voice', sa.String(length=50), nullable=True),
        sa.Column('failover_action', sa.String(length=20), nullable=False),
        sa.Column('failover_target_id', sa.String(length=50), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_ivr_menus_tenant_id'), 'ivr_menus', ['tenant_id'])
    op.create_index(op.f('ix_ivr_menus_status'), 'ivr_menus', ['status'])

    op.create_table(
        'ivr_menu_options',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ivr_menu_id', sa.Integer(), sa.ForeignKey('ivr_menus.id', ondelete='CASCADE'), nullable=False),
        sa.Column('input_digits', sa.String(length=10), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('destination_type', sa.String(length=20), nullable=False),
        sa.Column('destination_id', sa.String(length=50), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.UniqueConstraint('ivr_menu_id', 'input_digits', name='uq_ivr_menu_option_digits'),
    )
    op.create_index(op.f('ix_ivr_menu_options_ivr_menu_id'), 'ivr_menu_options', ['ivr_menu_id'])

    op.create_table(
        'did_numbers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('phone_number', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=10), nullable=False),
        sa.Column('routing_type', sa.String(length=20), nullable=False),
        sa.Column('routing_config', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_did_numbers_tenant_id'), 'did_numbers', ['tenant_id'])
    op.create_index(op.f('ix_did_numbers_phone_number'), 'did_numbers', ['phone_number'], unique=True)
    op.create_index(op.f('ix_did_numbers_status'), 'did_numbers', ['status'])

    op.create_table(
        'outbound_whitelists',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('destination_country', sa.String(length=10), nullable=False),
        sa.Column('destination_prefix', sa.String(length=20), nullable=True),
        sa.Column('outbound_trunk_name', sa.String(length=100), nullable=False),
        *_timestamps(),
    )
    op.create_index(op.f('ix_outbound_whitelists_tenant_id'), 'outbound_whitelists', ['tenant_id'])

    op.create_table(
        'cache_locks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('owner', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f('ix_cache_locks_key'), 'cache_locks', ['key'], unique=True)
    op.create_index(op.f('ix_cache_locks_expires_at'), 'cache_locks', ['expires_at'])


def downgrade():
    for table in ('cache_locks', 'outbound_whitelists', 'did_numbers', 'ivr_menu_options', 'ivr_menus',
                  'business_hours_exception_time_ranges', 'business_hours_exceptions',
                  'business_hours_time_ranges', 'business_hours_schedule_days', 'business_hours_schedules',
                  'conference_rooms', 'ring_group_members', 'ring_groups', 'extensions', 'tenants'):
        op.drop_table(table)
