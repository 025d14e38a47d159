"""create stations observations and request cache

Revision ID: 4f1c2a9d7e30
Revises: 
Create Date: 2026-10-18 09:12:41.203517+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9d7e30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create stations table
    op.create_table(
        'stations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False, comment='Upstream station identifier'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='Station name'),
        sa.Column('city', sa.String(length=200), nullable=True, comment='Municipality the station belongs to'),
        sa.Column('latitude', sa.Float(), nullable=False, comment='Latitude in degrees'),
        sa.Column('longitude', sa.Float(), nullable=False, comment='Longitude in degrees'),
        sa.Column('altitude', sa.Float(), nullable=True, comment='Altitude in metres'),
        sa.Column('station_type', sa.String(length=50), nullable=True, comment='Station category tag'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_stations_code'), 'stations', ['code'], unique=True)
    op.create_index(op.f('ix_stations_id'), 'stations', ['id'], unique=False)

    # Create observations table
    op.create_table(
        'observations',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('station_code', sa.String(length=50), nullable=False, comment='Upstream station identifier'),
        sa.Column('ts', sa.DateTime(timezone=True), nullable=False, comment='Observation instant (UTC)'),
        sa.Column('temperature', sa.Float(), nullable=True, comment='Mean air temperature in °C'),
        sa.Column('temp_min', sa.Float(), nullable=True, comment='Minimum air temperature in °C'),
        sa.Column('temp_max', sa.Float(), nullable=True, comment='Maximum air temperature in °C'),
        sa.Column('rainfall', sa.Float(), nullable=True, comment='Rainfall over the reporting period in mm'),
        sa.Column('rainfall_24h', sa.Float(), nullable=True, comment='Rainfall over 24 hours in mm'),
        sa.Column('wind_speed', sa.Float(), nullable=True, comment='Mean wind speed in m/s'),
        sa.Column('wind_gust', sa.Float(), nullable=True, comment='Wind gust speed in m/s'),
        sa.Column('relative_humidity', sa.Float(), nullable=True, comment='Relative humidity in %'),
        sa.Column('pressure', sa.Float(), nullable=True, comment='Pressure in hPa'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('station_code', 'ts', name='uq_observation_station_ts')
    )
    op.create_index(op.f('ix_observations_id'), 'observations', ['id'], unique=False)
    op.create_index(op.f('ix_observations_station_code'), 'observations', ['station_code'], unique=False)
    op.create_index('idx_observation_station_ts', 'observations', ['station_code', 'ts'], unique=False)

    # Create request cache table
    op.create_table(
        'cached_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('hash', sa.String(length=64), nullable=False, comment='SHA-256 of the request parts'),
        sa.Column('payload', sa.Text(), nullable=False, comment='JSON-serialised payload'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cached_requests_hash'), 'cached_requests', ['hash'], unique=True)
    op.create_index(op.f('ix_cached_requests_id'), 'cached_requests', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_cached_requests_id'), table_name='cached_requests')
    op.drop_index(op.f('ix_cached_requests_hash'), table_name='cached_requests')
    op.drop_table('cached_requests')

    op.drop_index('idx_observation_station_ts', table_name='observations')
    op.drop_index(op.f('ix_observations_station_code'), table_name='observations')
    op.drop_index(op.f('ix_observations_id'), table_name='observations')
    op.drop_table('observations')

    op.drop_index(op.f('ix_stations_id'), table_name='stations')
    op.drop_index(op.f('ix_stations_code'), table_name='stations')
    op.drop_table('stations')
