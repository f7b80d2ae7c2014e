"""initial_telemetry_schema

Revision ID: 3f2a9c1d7e01
Revises:
Create Date: 2025-06-02 09:15:00

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7e01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_PAYLOAD = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _tz() -> sa.DateTime:
    return sa.DateTime(timezone=True)


def upgrade() -> None:
    """
    Create the full telemetry schema.

    Natural keys are unique indexes so that the ingestion stages can upsert
    with ON CONFLICT on every supported dialect.
    """
    print("[MIGRATION] Creating telemetry schema...")

    # ========================================
    # REGISTRY / SHARED STATE
    # ========================================
    op.create_table(
        'devices',
        sa.Column('device_id', sa.String(64), primary_key=True),
        sa.Column('device_name', sa.String(200), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column('last_seen', _tz(), nullable=True),
    )

    op.create_table(
        'app_settings',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('expires_at', _tz(), nullable=True),
        sa.Column('metadata', JSON_PAYLOAD, nullable=True),
        sa.Column('updated_at', _tz(), server_default=sa.func.now()),
    )

    op.create_table(
        'pipeline_locks',
        sa.Column('name', sa.String(100), primary_key=True),
        sa.Column('holder', sa.String(100), nullable=False),
        sa.Column('acquired_at', _tz(), nullable=False),
        sa.Column('expires_at', _tz(), nullable=False),
    )

    op.create_table(
        'provider_sync_status',
        sa.Column('device_id', sa.String(64), primary_key=True),
        sa.Column('sync_status', sa.String(20), nullable=False, server_default='idle'),
        sa.Column('current_stage', sa.String(30), nullable=True),
        sa.Column('last_position_synced_at', _tz(), nullable=True),
        sa.Column('last_trip_synced_at', _tz(), nullable=True),
        sa.Column('last_alarm_synced_at', _tz(), nullable=True),
        sa.Column('last_mileage_synced_at', _tz(), nullable=True),
        sa.Column('trips_synced_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('alarms_synced_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('last_run_at', _tz(), nullable=True),
        sa.Column('updated_at', _tz(), server_default=sa.func.now()),
        sa.CheckConstraint(
            "sync_status IN ('idle', 'syncing', 'completed', 'error')",
            name='chk_sync_status_value'
        ),
    )

    # ========================================
    # POSITIONS
    # ========================================
    op.create_table(
        'position_history',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('speed', sa.Float(), nullable=False),
        sa.Column('heading', sa.Float(), nullable=True),
        sa.Column('altitude', sa.Float(), nullable=True),
        sa.Column('ignition_on', sa.Boolean(), nullable=False),
        sa.Column('battery_percent', sa.Integer(), nullable=True),
        sa.Column('gps_time', _tz(), nullable=False),
        sa.Column('recorded_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('latitude >= -90 AND latitude <= 90', name='chk_position_latitude'),
        sa.CheckConstraint('longitude >= -180 AND longitude <= 180', name='chk_position_longitude'),
        sa.CheckConstraint('speed >= 0', name='chk_position_speed'),
    )
    op.create_index('uq_position_device_gps_time', 'position_history',
                    ['device_id', 'gps_time'], unique=True)

    op.create_table(
        'vehicle_positions',
        sa.Column('device_id', sa.String(64), primary_key=True),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('speed', sa.Float(), nullable=False),
        sa.Column('heading', sa.Float(), nullable=True),
        sa.Column('altitude', sa.Float(), nullable=True),
        sa.Column('ignition_on', sa.Boolean(), nullable=False),
        sa.Column('battery_percent', sa.Integer(), nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=False),
        sa.Column('gps_time', _tz(), nullable=False),
        sa.Column('cached_at', _tz(), server_default=sa.func.now(), nullable=False),
    )

    # ========================================
    # TRIPS
    # ========================================
    op.create_table(
        'provider_trips',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('start_time', _tz(), nullable=False),
        sa.Column('end_time', _tz(), nullable=True),
        sa.Column('start_latitude', sa.Float(), nullable=True),
        sa.Column('start_longitude', sa.Float(), nullable=True),
        sa.Column('end_latitude', sa.Float(), nullable=True),
        sa.Column('end_longitude', sa.Float(), nullable=True),
        sa.Column('distance_km', sa.Float(), nullable=True),
        sa.Column('avg_speed_kmh', sa.Float(), nullable=True),
        sa.Column('max_speed_kmh', sa.Float(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('raw_data', JSON_PAYLOAD, nullable=True),
        sa.Column('synced_at', _tz(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('uq_provider_trips_device_start', 'provider_trips',
                    ['device_id', 'start_time'], unique=True)

    op.create_table(
        'vehicle_trips',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('source', sa.String(20), nullable=False, server_default='provider'),
        sa.Column('start_time', _tz(), nullable=False),
        sa.Column('end_time', _tz(), nullable=False),
        sa.Column('start_latitude', sa.Float(), nullable=False),
        sa.Column('start_longitude', sa.Float(), nullable=False),
        sa.Column('end_latitude', sa.Float(), nullable=False),
        sa.Column('end_longitude', sa.Float(), nullable=False),
        sa.Column('distance_km', sa.Float(), nullable=False),
        sa.Column('avg_speed_kmh', sa.Float(), nullable=True),
        sa.Column('max_speed_kmh', sa.Float(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('created_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', _tz(), server_default=sa.func.now()),
        sa.CheckConstraint('end_time >= start_time', name='chk_vehicle_trip_times'),
        sa.CheckConstraint('distance_km >= 0', name='chk_vehicle_trip_distance'),
        sa.CheckConstraint('duration_seconds >= 0', name='chk_vehicle_trip_duration'),
        sa.CheckConstraint("source IN ('provider', 'position_history')", name='chk_vehicle_trip_source'),
    )
    op.create_index('uq_vehicle_trips_device_start', 'vehicle_trips',
                    ['device_id', 'start_time'], unique=True)
    op.create_index('idx_vehicle_trips_device_end', 'vehicle_trips', ['device_id', 'end_time'])

    op.create_table(
        'trip_harsh_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('trip_id', sa.Integer(),
                  sa.ForeignKey('vehicle_trips.id', ondelete='CASCADE'), nullable=False),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('event_type', sa.String(30), nullable=False),
        sa.Column('occurred_at', _tz(), nullable=False),
        sa.Column('magnitude', sa.Float(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.CheckConstraint(
            "event_type IN ('harsh_braking', 'harsh_acceleration', 'harsh_cornering')",
            name='chk_harsh_event_type'
        ),
    )
    op.create_index('idx_harsh_events_trip', 'trip_harsh_events', ['trip_id'])

    op.create_table(
        'trip_analytics',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('trip_id', sa.Integer(),
                  sa.ForeignKey('vehicle_trips.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('driver_score', sa.Integer(), nullable=False),
        sa.Column('harsh_braking_count', sa.Integer(), nullable=False),
        sa.Column('harsh_acceleration_count', sa.Integer(), nullable=False),
        sa.Column('harsh_cornering_count', sa.Integer(), nullable=False),
        sa.Column('summary_text', sa.Text(), nullable=False),
        sa.Column('analyzed_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('driver_score >= 0 AND driver_score <= 100', name='chk_driver_score_range'),
    )

    # ========================================
    # GEOFENCES
    # ========================================
    op.create_table(
        'geofence_zones',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('zone_type', sa.String(50), nullable=False, server_default='custom'),
        sa.Column('center_latitude', sa.Float(), nullable=False),
        sa.Column('center_longitude', sa.Float(), nullable=False),
        sa.Column('radius_meters', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('provider_record_id', sa.String(64), nullable=True),
        sa.Column('provider_category_id', sa.String(64), nullable=True),
        sa.Column('created_at', _tz(), server_default=sa.func.now()),
        sa.Column('updated_at', _tz(), nullable=True),
        sa.CheckConstraint('radius_meters > 0', name='chk_zone_radius_positive'),
    )

    op.create_table(
        'geofence_monitors',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('zone_id', sa.Integer(),
                  sa.ForeignKey('geofence_zones.id', ondelete='CASCADE'), nullable=True),
        sa.Column('location_name', sa.String(200), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('radius_meters', sa.Float(), nullable=True),
        sa.Column('trigger_on', sa.String(10), nullable=False, server_default='both'),
        sa.Column('active_days', JSON_PAYLOAD, nullable=True),
        sa.Column('active_from', sa.String(5), nullable=True),
        sa.Column('active_until', sa.String(5), nullable=True),
        sa.Column('one_time', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('expires_at', _tz(), nullable=True),
        sa.Column('vehicle_inside', sa.Boolean(), nullable=False),
        sa.Column('last_checked_at', _tz(), nullable=True),
        sa.Column('last_triggered_at', _tz(), nullable=True),
        sa.Column('trigger_count', sa.Integer(), nullable=False),
        sa.Column('created_at', _tz(), server_default=sa.func.now()),
        sa.CheckConstraint("trigger_on IN ('enter', 'exit', 'both')", name='chk_monitor_trigger_on'),
    )
    op.create_index('idx_geofence_monitors_active', 'geofence_monitors', ['is_active'])
    op.create_index('idx_geofence_monitors_device', 'geofence_monitors', ['device_id'])

    op.create_table(
        'geofence_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('monitor_id', sa.Integer(),
                  sa.ForeignKey('geofence_monitors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('zone_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(10), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('occurred_at', _tz(), nullable=False),
        sa.Column('metadata', JSON_PAYLOAD, nullable=True),
        sa.CheckConstraint("event_type IN ('enter', 'exit')", name='chk_geofence_event_type'),
    )
    op.create_index('idx_geofence_events_monitor', 'geofence_events', ['monitor_id', 'occurred_at'])

    # ========================================
    # ALARMS / NOTIFICATIONS / REPORTS
    # ========================================
    op.create_table(
        'provider_alarms',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('alarm_code', sa.Integer(), nullable=False),
        sa.Column('alarm_description', sa.String(500), nullable=True),
        sa.Column('alarm_description_en', sa.String(500), nullable=True),
        sa.Column('video_alarm_code', sa.Integer(), nullable=True),
        sa.Column('video_alarm_description', sa.String(500), nullable=True),
        sa.Column('severity', sa.String(10), nullable=False, server_default='info'),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('speed_kmh', sa.Float(), nullable=True),
        sa.Column('altitude', sa.Float(), nullable=True),
        sa.Column('heading', sa.Float(), nullable=True),
        sa.Column('alarm_time', _tz(), nullable=False),
        sa.Column('raw_data', JSON_PAYLOAD, nullable=True),
        sa.Column('created_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "severity IN ('critical', 'error', 'warning', 'info')",
            name='chk_alarm_severity'
        ),
    )
    op.create_index('uq_provider_alarms_natural_key', 'provider_alarms',
                    ['device_id', 'alarm_time', 'alarm_code'], unique=True)
    op.create_index('idx_provider_alarms_severity', 'provider_alarms', ['severity'])

    op.create_table(
        'proactive_vehicle_events',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(10), nullable=False, server_default='info'),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('metadata', JSON_PAYLOAD, nullable=True),
        sa.Column('created_at', _tz(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_proactive_events_device_type', 'proactive_vehicle_events',
                    ['device_id', 'event_type', 'created_at'])

    op.create_table(
        'mileage_details',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('statistics_day', sa.Date(), nullable=False),
        sa.Column('provider_record_id', sa.String(64), nullable=True),
        sa.Column('start_time', _tz(), nullable=True),
        sa.Column('end_time', _tz(), nullable=True),
        sa.Column('begin_distance', sa.Float(), nullable=True),
        sa.Column('end_distance', sa.Float(), nullable=True),
        sa.Column('total_distance', sa.Float(), nullable=True),
        sa.Column('avg_speed_kmh', sa.Float(), nullable=True),
        sa.Column('over_speed', sa.Integer(), nullable=True),
        sa.Column('total_acc_seconds', sa.Integer(), nullable=True),
        sa.Column('begin_oil', sa.Float(), nullable=True),
        sa.Column('end_oil', sa.Float(), nullable=True),
        sa.Column('add_oil', sa.Float(), nullable=True),
        sa.Column('leak_oil', sa.Float(), nullable=True),
        sa.Column('oil_per_100km', sa.Float(), nullable=True),
        sa.Column('raw_data', JSON_PAYLOAD, nullable=True),
        sa.Column('synced_at', _tz(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('uq_mileage_device_day', 'mileage_details',
                    ['device_id', 'statistics_day'], unique=True)

    op.create_table(
        'vehicle_command_logs',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('device_id', sa.String(64), nullable=False),
        sa.Column('command_type', sa.String(40), nullable=False),
        sa.Column('payload', JSON_PAYLOAD, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('provider_command_id', sa.String(64), nullable=True),
        sa.Column('result', JSON_PAYLOAD, nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', _tz(), server_default=sa.func.now(), nullable=False),
        sa.Column('executed_at', _tz(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'executing', 'success', 'sent_unconfirmed', 'failed')",
            name='chk_command_status'
        ),
    )
    op.create_index('idx_command_logs_device', 'vehicle_command_logs', ['device_id', 'created_at'])

    print("[MIGRATION] ✅ Telemetry schema created")


def downgrade() -> None:
    for table in (
        'vehicle_command_logs', 'mileage_details', 'proactive_vehicle_events',
        'provider_alarms', 'geofence_events', 'geofence_monitors', 'geofence_zones',
        'trip_analytics', 'trip_harsh_events', 'vehicle_trips', 'provider_trips',
        'vehicle_positions', 'position_history', 'provider_sync_status',
        'pipeline_locks', 'app_settings', 'devices',
    ):
        op.drop_table(table)
