from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'asteroids',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('neo_id', sa.String, nullable=False, unique=True, index=True),
        sa.Column('name', sa.String, nullable=False),
        sa.Column('nasa_jpl_url', sa.String),
        sa.Column('absolute_magnitude', sa.Float),
        sa.Column('diameter_min_km', sa.Float),
        sa.Column('diameter_max_km', sa.Float),
        sa.Column('is_potentially_hazardous', sa.Boolean, nullable=False),
        sa.Column('close_approach_data', sa.JSON),
        sa.Column('orbital_data', sa.JSON),
        sa.Column('risk_score', sa.Integer, nullable=False),
        sa.Column('risk_level', sa.String, nullable=False),
        sa.Column('last_fetched_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('idx_asteroid_risk_score', 'asteroids', ['risk_score'])
    op.create_index('idx_asteroid_risk_level', 'asteroids', ['risk_level'])

    op.create_table(
        'watched_asteroids',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String, nullable=False, index=True),
        sa.Column(
            'neo_id',
            sa.String,
            sa.ForeignKey('asteroids.neo_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('alert_enabled', sa.Boolean, nullable=False),
        sa.Column('min_distance_threshold_km', sa.Float),
        sa.Column('notes', sa.Text),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('user_id', 'neo_id', name='uq_watched_user_neo'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String, nullable=False, index=True),
        sa.Column('neo_id', sa.String),
        sa.Column('notification_type', sa.String, nullable=False),
        sa.Column('title', sa.String, nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('metadata', sa.JSON),
        sa.Column('event_key', sa.String),
        sa.Column('is_read', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('user_id', 'event_key', name='uq_notification_user_event'),
    )
    op.create_index('idx_notification_user_created', 'notifications', ['user_id', 'created_at'])

def downgrade():
    op.drop_index('idx_notification_user_created', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('watched_asteroids')
    op.drop_index('idx_asteroid_risk_level', table_name='asteroids')
    op.drop_index('idx_asteroid_risk_score', table_name='asteroids')
    op.drop_table('asteroids')
