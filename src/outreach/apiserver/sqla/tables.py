"""Defines our app db tables and models using the SQLAlchemy ORM."""

import secrets
from datetime import UTC, datetime
from typing import ClassVar

import sqlalchemy
from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeEngine

from outreach.apiserver.constants import DEFAULT_DAILY_LIMIT, PASSWORD_COLUMN_LENGTH

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"


def unique_id_factory(prefix: str):
    def generate() -> str:
        return prefix + "_" + "".join([secrets.choice(ALPHABET) for _ in range(16)])

    return generate


account_id_factory = unique_id_factory("acc")
campaign_id_factory = unique_id_factory("cmp")
lead_list_id_factory = unique_id_factory("ll")
message_id_factory = unique_id_factory("msg")
template_id_factory = unique_id_factory("tpl")
user_id_factory = unique_id_factory("u")


def utc_now():
    return datetime.now(UTC)


class Base(AsyncAttrs, DeclarativeBase):
    # See https://docs.sqlalchemy.org/en/20/orm/declarative_tables.html#customizing-the-type-map
    type_annotation_map: ClassVar[dict[type, TypeEngine]] = {
        datetime: sqlalchemy.TIMESTAMP(timezone=True),
    }

    def to_dict(self):
        """Quick and dirty dump to dict for debugging."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class User(Base):
    """Represents a user of the application as known to the identity provider."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(primary_key=True, default=user_id_factory)
    # The subject identifier assigned by the identity provider.
    external_id: Mapped[str] = mapped_column(String(255), unique=True)
    email: Mapped[str] = mapped_column(String(255), server_default="")
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())

    platform_accounts: Mapped[list["PlatformAccount"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    message_templates: Mapped[list["MessageTemplate"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    campaigns: Mapped[list["Campaign"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    lead_lists: Mapped[list["LeadList"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class PlatformAccount(Base):
    """Represents a third-party messaging account that a user sends campaign messages from."""

    __tablename__ = "platform_accounts"

    id: Mapped[str] = mapped_column(primary_key=True, default=account_id_factory)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    username: Mapped[str] = mapped_column(String(255))
    # The account password as returned by CredentialService.seal(): an enc:v1 envelope when encryption is enabled,
    # otherwise the password itself. Rows written before encryption was enabled hold plaintext. Empty when unset.
    password: Mapped[str] = mapped_column(String(PASSWORD_COLUMN_LENGTH), server_default="")
    proxy: Mapped[str | None] = mapped_column()
    is_active: Mapped[bool] = mapped_column(default=True)
    daily_limit: Mapped[int] = mapped_column(default=DEFAULT_DAILY_LIMIT)
    last_login: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())

    user: Mapped["User"] = relationship(back_populates="platform_accounts")
    messages: Mapped[list["Message"]] = relationship(back_populates="platform_account", cascade="all, delete-orphan")


class Message(Base):
    """Represents a message queued for or sent from a platform account."""

    __tablename__ = "messages"
    __table_args__ = (Index("idx_messages_account_status_sent_at", "platform_account_id", "status", "sent_at"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=message_id_factory)
    platform_account_id: Mapped[str] = mapped_column(ForeignKey("platform_accounts.id", ondelete="CASCADE"))
    campaign_id: Mapped[str | None] = mapped_column(ForeignKey("campaigns.id", ondelete="CASCADE"))
    recipient_username: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column(server_default="")
    # One of "pending", "sent", or "failed".
    status: Mapped[str] = mapped_column(String(32), default="pending")
    sent_at: Mapped[datetime | None] = mapped_column()
    # Why the last delivery attempt failed, as reported by the sender.
    error: Mapped[str | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())

    platform_account: Mapped["PlatformAccount"] = relationship(back_populates="messages")
    campaign: Mapped["Campaign | None"] = relationship(back_populates="messages")


class MessageTemplate(Base):
    """Represents a reusable message body with {placeholder} variables."""

    __tablename__ = "message_templates"

    id: Mapped[str] = mapped_column(primary_key=True, default=template_id_factory)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(255))
    content: Mapped[str] = mapped_column()
    # A list of TemplateVariable dicts.
    variables: Mapped[list[dict]] = mapped_column(sqlalchemy.JSON, default=list)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, server_default=sqlalchemy.sql.func.now()
    )

    user: Mapped["User"] = relationship(back_populates="message_templates")


class Campaign(Base):
    """Represents an outreach campaign: who to contact, with which template, and on what schedule."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(primary_key=True, default=campaign_id_factory)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column()
    # One of "draft", "active", "paused", or "completed".
    status: Mapped[str] = mapped_column(String(32), default="draft")
    message_template_id: Mapped[str | None] = mapped_column(
        ForeignKey("message_templates.id", ondelete="SET NULL")
    )
    # Free-form settings owned by the dashboard; stored as sent.
    target_criteria: Mapped[dict | None] = mapped_column(sqlalchemy.JSON)
    schedule: Mapped[dict | None] = mapped_column(sqlalchemy.JSON)
    settings: Mapped[dict | None] = mapped_column(sqlalchemy.JSON)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, server_default=sqlalchemy.sql.func.now()
    )

    user: Mapped["User"] = relationship(back_populates="campaigns")
    messages: Mapped[list["Message"]] = relationship(back_populates="campaign")


class LeadList(Base):
    """Represents a named list of platform usernames to contact."""

    __tablename__ = "lead_lists"
    __table_args__ = (UniqueConstraint("user_id", "name", name="uq_lead_lists_user_name"),)

    id: Mapped[str] = mapped_column(primary_key=True, default=lead_list_id_factory)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))
    name: Mapped[str] = mapped_column(String(255))
    usernames: Mapped[list[str]] = mapped_column(sqlalchemy.JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, server_default=sqlalchemy.sql.func.now())
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, server_default=sqlalchemy.sql.func.now()
    )

    user: Mapped["User"] = relationship(back_populates="lead_lists")
