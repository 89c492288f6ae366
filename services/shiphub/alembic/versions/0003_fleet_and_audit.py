from alembic import op
import sqlalchemy as sa

revision = '0003_fleet_and_audit'
down_revision = '0002_companies_and_warehouses'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'drivers',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=True, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone_number', sa.String(50), nullable=False),
        sa.Column('license_number', sa.String(50), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'vehicles',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('model', sa.String(100), nullable=False),
        sa.Column('capacity', sa.String(50), nullable=False),
        sa.Column('plate_number', sa.String(30), nullable=False, unique=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('shipping_requests.id'), nullable=False, unique=True),
        sa.Column('driver_id', sa.String(64), sa.ForeignKey('drivers.id'), nullable=False, index=True),
        sa.Column('vehicle_id', sa.String(64), sa.ForeignKey('vehicles.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('assigned_by', sa.String(64), nullable=True),
        sa.Column('assigned_at', sa.DateTime, nullable=False),
        sa.Column('estimated_delivery', sa.DateTime, nullable=True),
    )
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('action', sa.String(50), nullable=False, index=True),
        sa.Column('actor', sa.String(64), nullable=True, index=True),
        sa.Column('role', sa.String(20), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('resource_type', sa.String(30), nullable=False),
        sa.Column('resource_id', sa.String(64), nullable=False, index=True),
        sa.Column('changes', sa.JSON, nullable=True),
        sa.Column('timestamp', sa.DateTime, nullable=False),
    )

def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('assignments')
    op.drop_table('vehicles')
    op.drop_table('drivers')
