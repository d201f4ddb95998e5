"""Initial FUN Farm schema

Revision ID: 20261018000000
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018000000'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False),

        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('avatar_url', sa.String(length=500), nullable=True),
        sa.Column('cover_url', sa.String(length=500), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),
        sa.Column('profile_type', sa.String(length=20), nullable=False),
        sa.Column('wallet_address', sa.String(length=64), nullable=True),
        sa.Column('wallet_connected', sa.Boolean(), nullable=False),

        # Balances
        sa.Column('camly_balance', sa.BigInteger(), nullable=False),
        sa.Column('pending_reward', sa.BigInteger(), nullable=False),
        sa.Column('approved_reward', sa.BigInteger(), nullable=False),
        sa.Column('welcome_bonus_claimed', sa.Boolean(), nullable=False),
        sa.Column('wallet_bonus_claimed', sa.Boolean(), nullable=False),
        sa.Column('verification_bonus_claimed', sa.Boolean(), nullable=False),

        # Trust & moderation
        sa.Column('reputation_score', sa.Integer(), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('is_good_heart', sa.Boolean(), nullable=False),
        sa.Column('banned', sa.Boolean(), nullable=False),
        sa.Column('ban_reason', sa.Text(), nullable=True),
        sa.Column('banned_at', sa.DateTime(timezone=True), nullable=True),

        # Fun Profile merge
        sa.Column('fun_profile_id', sa.String(length=100), nullable=True),
        sa.Column('fun_id', sa.String(length=100), nullable=True),
        sa.Column('is_merged', sa.Boolean(), nullable=False),
        sa.Column('merged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('merge_request_id', sa.String(length=100), nullable=True),

        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_id', 'profiles', ['id'])
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_wallet_address', 'profiles', ['wallet_address'])
    op.create_index('ix_profiles_banned', 'profiles', ['banned'])
    op.create_index('ix_profiles_fun_profile_id', 'profiles', ['fun_profile_id'], unique=True)
    op.create_index('ix_profiles_is_merged', 'profiles', ['is_merged'])
    op.create_index('ix_profiles_merge_request_id', 'profiles', ['merge_request_id'])
    op.create_index('ix_profiles_created_at', 'profiles', ['created_at'])

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    op.create_table(
        'deleted_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('deleted_by', sa.Uuid(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_deleted_users_user_id', 'deleted_users', ['user_id'], unique=True)

    # Feed & marketplace
    op.create_table(
        'posts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=False),
        sa.Column('post_type', sa.String(length=20), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('video_url', sa.String(length=1000), nullable=True),
        sa.Column('hashtags', sa.JSON(), nullable=True),
        sa.Column('location', sa.String(length=200), nullable=True),

        sa.Column('is_product_post', sa.Boolean(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=True),
        sa.Column('price_camly', sa.BigInteger(), nullable=True),
        sa.Column('price_vnd', sa.BigInteger(), nullable=True),
        sa.Column('quantity_kg', sa.Float(), nullable=True),
        sa.Column('delivery_options', sa.JSON(), nullable=True),

        sa.Column('original_post_id', sa.Uuid(), nullable=True),
        sa.Column('share_comment', sa.Text(), nullable=True),
        sa.Column('gift_receiver_id', sa.Uuid(), nullable=True),

        sa.Column('likes_count', sa.Integer(), nullable=False),
        sa.Column('comments_count', sa.Integer(), nullable=False),
        sa.Column('shares_count', sa.Integer(), nullable=False),

        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['author_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['original_post_id'], ['posts.id']),
        sa.ForeignKeyConstraint(['gift_receiver_id'], ['profiles.id']),
    )
    op.create_index('ix_posts_id', 'posts', ['id'])
    op.create_index('ix_posts_author_id', 'posts', ['author_id'])
    op.create_index('ix_posts_post_type', 'posts', ['post_type'])
    op.create_index('ix_posts_is_product_post', 'posts', ['is_product_post'])
    op.create_index('ix_posts_original_post_id', 'posts', ['original_post_id'])
    op.create_index('ix_posts_gift_receiver_id', 'posts', ['gift_receiver_id'])
    op.create_index('ix_posts_created_at', 'posts', ['created_at'])
    op.create_index('ix_posts_author_created', 'posts', ['author_id', 'created_at'])

    op.create_table(
        'post_likes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('reaction_type', sa.String(length=20), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.UniqueConstraint('post_id', 'user_id', name='uq_post_likes_post_user'),
    )
    op.create_index('ix_post_likes_post_id', 'post_likes', ['post_id'])
    op.create_index('ix_post_likes_user_id', 'post_likes', ['user_id'])
    op.create_index('ix_post_likes_created_at', 'post_likes', ['created_at'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['profiles.id']),
    )
    op.create_index('ix_comments_id', 'comments', ['id'])
    op.create_index('ix_comments_post_id', 'comments', ['post_id'])
    op.create_index('ix_comments_author_id', 'comments', ['author_id'])
    op.create_index('ix_comments_created_at', 'comments', ['created_at'])
    op.create_index('ix_comments_post_created', 'comments', ['post_id', 'created_at'])

    op.create_table(
        'post_shares',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('share_post_id', sa.Uuid(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['share_post_id'], ['posts.id']),
    )
    op.create_index('ix_post_shares_post_id', 'post_shares', ['post_id'])
    op.create_index('ix_post_shares_user_id', 'post_shares', ['user_id'])
    op.create_index('ix_post_shares_created_at', 'post_shares', ['created_at'])

    op.create_table(
        'followers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('follower_id', sa.Uuid(), nullable=False),
        sa.Column('following_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['follower_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['following_id'], ['profiles.id']),
        sa.UniqueConstraint('follower_id', 'following_id', name='uq_followers_follower_following'),
    )
    op.create_index('ix_followers_follower_id', 'followers', ['follower_id'])
    op.create_index('ix_followers_following_id', 'followers', ['following_id'])
    op.create_index('ix_followers_status', 'followers', ['status'])
    op.create_index('ix_followers_created_at', 'followers', ['created_at'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('post_id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('seller_id', sa.Uuid(), nullable=False),
        sa.Column('shipper_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('quantity_kg', sa.Float(), nullable=False),
        sa.Column('price_per_kg_camly', sa.BigInteger(), nullable=False),
        sa.Column('price_per_kg_vnd', sa.BigInteger(), nullable=True),
        sa.Column('total_camly', sa.BigInteger(), nullable=False),
        sa.Column('total_vnd', sa.BigInteger(), nullable=True),
        sa.Column('delivery_option', sa.String(length=50), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id']),
        sa.ForeignKeyConstraint(['buyer_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['seller_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['shipper_id'], ['profiles.id']),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_post_id', 'orders', ['post_id'])
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_shipper_id', 'orders', ['shipper_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('sender_id', sa.Uuid(), nullable=False),
        sa.Column('receiver_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('post_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('tx_hash', sa.String(length=100), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['sender_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['receiver_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['post_id'], ['posts.id']),
    )
    op.create_index('ix_wallet_transactions_id', 'wallet_transactions', ['id'])
    op.create_index('ix_wallet_transactions_sender_id', 'wallet_transactions', ['sender_id'])
    op.create_index('ix_wallet_transactions_receiver_id', 'wallet_transactions', ['receiver_id'])
    op.create_index('ix_wallet_transactions_tx_hash', 'wallet_transactions', ['tx_hash'])
    op.create_index('ix_wallet_transactions_created_at', 'wallet_transactions', ['created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('from_user_id', sa.Uuid(), nullable=True),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('post_id', sa.Uuid(), nullable=True),
        sa.Column('comment_id', sa.Uuid(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['from_user_id'], ['profiles.id']),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_read', 'notifications', ['read'])
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'])
    op.create_index('ix_notifications_user_created', 'notifications', ['user_id', 'created_at'])

    # Fun Profile merge
    op.create_table(
        'merge_request_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('request_id', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('profile_data', sa.JSON(), nullable=True),
        sa.Column('fun_profile_id', sa.String(length=100), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('webhook_received_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
    )
    op.create_index('ix_merge_request_logs_user_id', 'merge_request_logs', ['user_id'])
    op.create_index('ix_merge_request_logs_email', 'merge_request_logs', ['email'])
    op.create_index('ix_merge_request_logs_request_id', 'merge_request_logs', ['request_id'])
    op.create_index('ix_merge_request_logs_created_at', 'merge_request_logs', ['created_at'])

    op.create_table(
        'merge_conflicts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('conflicting_user_id', sa.Uuid(), nullable=True),
        sa.Column('conflicting_user_email', sa.String(length=255), nullable=True),
        sa.Column('fun_profile_id', sa.String(length=100), nullable=False),
        sa.Column('fun_id', sa.String(length=100), nullable=True),
        sa.Column('conflict_type', sa.String(length=50), nullable=False),
        sa.Column('conflict_details', sa.JSON(), nullable=True),
        sa.Column('resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_by', sa.Uuid(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolution_action', sa.String(length=30), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.ForeignKeyConstraint(['conflicting_user_id'], ['profiles.id']),
    )
    op.create_index('ix_merge_conflicts_id', 'merge_conflicts', ['id'])
    op.create_index('ix_merge_conflicts_user_id', 'merge_conflicts', ['user_id'])
    op.create_index('ix_merge_conflicts_resolved', 'merge_conflicts', ['resolved'])
    op.create_index('ix_merge_conflicts_created_at', 'merge_conflicts', ['created_at'])

    # Auth & admin
    op.create_table(
        'email_otps',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('otp_code', sa.String(length=6), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_email_otps_user_id', 'email_otps', ['user_id'])
    op.create_index('ix_email_otps_email', 'email_otps', ['email'])
    op.create_index('ix_email_otps_created_at', 'email_otps', ['created_at'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('target_type', sa.String(length=20), nullable=True),
        sa.Column('target_id', sa.String(length=50), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['actor_id'], ['profiles.id']),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_target_id', 'audit_logs', ['target_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_actor_created', 'audit_logs', ['actor_id', 'created_at'])


def downgrade():
    for table in (
        'audit_logs',
        'email_otps',
        'merge_conflicts',
        'merge_request_logs',
        'notifications',
        'wallet_transactions',
        'orders',
        'followers',
        'post_shares',
        'comments',
        'post_likes',
        'posts',
        'deleted_users',
        'user_roles',
        'profiles',
    ):
        op.drop_table(table)
