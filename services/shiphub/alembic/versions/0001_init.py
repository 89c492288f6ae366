from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'shipping_requests',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_number', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('source', sa.JSON, nullable=False),
        sa.Column('destination', sa.JSON, nullable=False),
        sa.Column('source_pickup_mode', sa.String(20), nullable=True),
        sa.Column('destination_pickup_mode', sa.String(20), nullable=True),
        sa.Column('delivery_type', sa.String(20), nullable=True),
        sa.Column('comment', sa.Text, nullable=True),
        sa.Column('estimated_cost', sa.Numeric(10,2), nullable=True),
        sa.Column('cost', sa.Numeric(10,2), nullable=True),
        sa.Column('request_status', sa.String(40), nullable=False, index=True),
        sa.Column('delivery_status', sa.String(40), nullable=False),
        sa.Column('assigned_company_id', sa.String(64), nullable=True, index=True),
        sa.Column('selected_company', sa.JSON, nullable=True),
        sa.Column('rejected_by_companies', sa.JSON, nullable=False),
        sa.Column('order_flow', sa.JSON, nullable=False),
        sa.Column('delivery_flow', sa.JSON, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.Column('version', sa.Integer, nullable=False),
    )
    op.create_table(
        'request_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('shipping_requests.id'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('dimensions', sa.String(100), nullable=False),
        sa.Column('weight', sa.String(50), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('note', sa.Text, nullable=True),
    )
    op.create_table(
        'cost_offers',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('shipping_requests.id'), nullable=False),
        sa.Column('company_id', sa.String(64), nullable=False),
        sa.Column('company_name', sa.String(200), nullable=False),
        sa.Column('company_phone', sa.String(50), nullable=False),
        sa.Column('company_email', sa.String(255), nullable=False),
        sa.Column('company_address', sa.String(500), nullable=False),
        sa.Column('company_rate', sa.String(20), nullable=False),
        sa.Column('cost', sa.Numeric(10,2), nullable=False),
        sa.Column('comment', sa.Text, nullable=False),
        sa.Column('selected', sa.Boolean, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('accepted_at', sa.DateTime, nullable=True),
        sa.Column('rejected_at', sa.DateTime, nullable=True),
        sa.UniqueConstraint('request_id', 'company_id', name='uq_cost_offers_request_company'),
    )
    op.create_table(
        'activity_history',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('shipping_requests.id'), nullable=False, index=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('timestamp', sa.DateTime, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('company_name', sa.String(200), nullable=True),
        sa.Column('company_rate', sa.String(20), nullable=True),
        sa.Column('cost', sa.Numeric(10,2), nullable=True),
        sa.Column('details', sa.JSON, nullable=True),
    )
    op.create_table(
        'status_history',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('request_id', sa.Integer, sa.ForeignKey('shipping_requests.id'), nullable=False, index=True),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('status', sa.String(40), nullable=False),
        sa.Column('changed_at', sa.DateTime, nullable=False),
        sa.Column('changed_by', sa.String(64), nullable=True),
        sa.Column('role', sa.String(20), nullable=True),
        sa.Column('note', sa.Text, nullable=True),
    )

def downgrade():
    op.drop_table('status_history')
    op.drop_table('activity_history')
    op.drop_table('cost_offers')
    op.drop_table('request_items')
    op.drop_table('shipping_requests')
