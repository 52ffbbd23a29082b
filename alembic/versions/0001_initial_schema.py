"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 10:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps() -> list[sa.Column]:
    """created_at/updated_at columns shared by every table."""
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        *timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Tokens are Fernet ciphertext, never plaintext
    op.create_table(
        'github_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False),
        sa.Column('label', sa.String(255), nullable=True),
        sa.Column('token', sa.Text(), nullable=False),
        *timestamps(),
        sa.UniqueConstraint('user_id', 'domain', name='uq_github_token_user_domain'),
    )
    op.create_index('ix_github_tokens_user_id', 'github_tokens', ['user_id'])

    op.create_table(
        'repositories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('github_domain', sa.String(255), nullable=False),
        sa.Column('owner', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(511), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('url', sa.String(500), nullable=True),
        sa.Column('issue_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('open_issue_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cached_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint(
            'user_id', 'github_domain', 'owner', 'name', name='uq_repository_user_domain_owner_name'
        ),
    )
    op.create_index('ix_repositories_user_id', 'repositories', ['user_id'])
    op.create_index('ix_repositories_cached_at', 'repositories', ['cached_at'])

    op.create_table(
        'repository_assignable_users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'repository_id', sa.Integer(), sa.ForeignKey('repositories.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('login', sa.String(255), nullable=False),
        sa.Column('avatar_url', sa.String(2000), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('repository_id', 'login', name='uq_assignable_user_repository_login'),
    )
    op.create_index(
        'ix_repository_assignable_users_repository_id', 'repository_assignable_users', ['repository_id']
    )
    op.create_index('ix_repository_assignable_users_login', 'repository_assignable_users', ['login'])

    op.create_table(
        'issues',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'repository_id', sa.Integer(), sa.ForeignKey('repositories.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(1000), nullable=False),
        sa.Column('state', sa.String(20), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('author_login', sa.String(255), nullable=True),
        sa.Column('author_avatar_url', sa.String(2000), nullable=True),
        sa.Column('labels', sa.JSON(), nullable=True),
        sa.Column('assignees', sa.JSON(), nullable=True),
        sa.Column('comments_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('github_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('github_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cached_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('repository_id', 'number', name='uq_issue_repository_number'),
    )
    op.create_index('ix_issues_repository_id', 'issues', ['repository_id'])
    op.create_index('ix_issues_repository_state', 'issues', ['repository_id', 'state'])

    op.create_table(
        'issue_comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('github_id', sa.BigInteger(), nullable=False),
        sa.Column('author_login', sa.String(255), nullable=True),
        sa.Column('author_avatar_url', sa.String(2000), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('github_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('github_updated_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('issue_id', 'github_id', name='uq_issue_comment_issue_github_id'),
    )
    op.create_index('ix_issue_comments_issue_id', 'issue_comments', ['issue_id'])


def downgrade() -> None:
    op.drop_table('issue_comments')
    op.drop_table('issues')
    op.drop_table('repository_assignable_users')
    op.drop_table('repositories')
    op.drop_table('github_tokens')
    op.drop_table('users')
