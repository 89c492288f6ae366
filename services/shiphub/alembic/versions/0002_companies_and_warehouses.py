from alembic import op
import sqlalchemy as sa

revision = '0002_companies_and_warehouses'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'companies',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=True, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone_number', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('address', sa.String(500), nullable=False),
        sa.Column('rate', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'warehouses',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('company_id', sa.String(64), sa.ForeignKey('companies.id'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('address', sa.String(500), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('country', sa.String(100), nullable=False),
        sa.Column('latitude', sa.Float, nullable=True),
        sa.Column('longitude', sa.Float, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    # Warehouse references on requests (id plus snapshot)
    op.add_column('shipping_requests', sa.Column('source_warehouse_id', sa.String(64), nullable=True))
    op.add_column('shipping_requests', sa.Column('source_warehouse', sa.JSON, nullable=True))
    op.add_column('shipping_requests', sa.Column('destination_warehouse_id', sa.String(64), nullable=True))
    op.add_column('shipping_requests', sa.Column('destination_warehouse', sa.JSON, nullable=True))

def downgrade():
    op.drop_column('shipping_requests', 'destination_warehouse')
    op.drop_column('shipping_requests', 'destination_warehouse_id')
    op.drop_column('shipping_requests', 'source_warehouse')
    op.drop_column('shipping_requests', 'source_warehouse_id')
    op.drop_table('warehouses')
    op.drop_table('companies')
