from __future__ import annotations

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

document_status = sa.Enum("PENDING", "SIGNED", "REJECTED", name="documentstatus")
invitation_role = sa.Enum("SIGNER", "WITNESS", "APPROVER", "VIEWER", name="invitationrole")
invitation_status = sa.Enum("PENDING", "COMPLETED", "REJECTED", name="invitationstatus")
audit_action = sa.Enum(
    "UPLOAD",
    "VIEW",
    "SIGN",
    "FINALIZE",
    "REJECT",
    "DOWNLOAD",
    "SHARE",
    "REVOKE",
    "CLEAR",
    name="auditaction",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sqlmodel.AutoString(), nullable=False),
        sa.Column("full_name", sqlmodel.AutoString(), nullable=False),
        sa.Column("password_hash", sqlmodel.AutoString(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "documents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("filename", sqlmodel.AutoString(), nullable=False),
        sa.Column("original_blob_ref", sqlmodel.AutoString(), nullable=False),
        sa.Column("signed_blob_ref", sqlmodel.AutoString(), nullable=True),
        sa.Column("share_token", sqlmodel.AutoString(), nullable=True),
        sa.Column("status", document_status, nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )
    op.create_index("ix_documents_id", "documents", ["id"])
    op.create_index("ix_documents_owner_id", "documents", ["owner_id"])
    op.create_index("ix_documents_share_token", "documents", ["share_token"], unique=True)

    op.create_table(
        "invitations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), sa.ForeignKey("documents.id"), nullable=False),
        sa.Column("sender_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sqlmodel.AutoString(), nullable=False),
        sa.Column("email", sqlmodel.AutoString(), nullable=False),
        sa.Column("role", invitation_role, nullable=False),
        sa.Column("token_hash", sqlmodel.AutoString(), nullable=False),
        sa.Column("status", invitation_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_invitations_id", "invitations", ["id"])
    op.create_index("ix_invitations_document_id", "invitations", ["document_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_token_hash", "invitations", ["token_hash"], unique=True)

    op.create_table(
        "signature_fields",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), sa.ForeignKey("documents.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("signer_email", sqlmodel.AutoString(), nullable=True),
        sa.Column("signer_name", sqlmodel.AutoString(), nullable=True),
        sa.Column("page", sa.Integer(), nullable=False),
        sa.Column("x", sa.Float(), nullable=False),
        sa.Column("y", sa.Float(), nullable=False),
        sa.Column("width", sa.Float(), nullable=False),
        sa.Column("height", sa.Float(), nullable=False),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_signature_fields_id", "signature_fields", ["id"])
    op.create_index("ix_signature_fields_document_id", "signature_fields", ["document_id"])
    op.create_index("ix_signature_fields_user_id", "signature_fields", ["user_id"])
    op.create_index("ix_signature_fields_signer_email", "signature_fields", ["signer_email"])

    # No foreign key to documents: the trail outlives deleted documents.
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("action", audit_action, nullable=False),
        sa.Column("actor_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("actor_email", sqlmodel.AutoString(), nullable=True),
        sa.Column("signer_name", sqlmodel.AutoString(), nullable=True),
        sa.Column("ip_address", sqlmodel.AutoString(), nullable=True),
        sa.Column("user_agent", sqlmodel.AutoString(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_id", "audit_logs", ["id"])
    op.create_index("ix_audit_logs_document_id", "audit_logs", ["document_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("signature_fields")
    op.drop_table("invitations")
    op.drop_table("documents")
    op.drop_table("users")
    bind = op.get_bind()
    for enum in (audit_action, invitation_status, invitation_role, document_status):
        enum.drop(bind, checkfirst=True)
