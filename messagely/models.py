from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from .database import Base


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
	"""Stores naive UTC, hands back aware UTC regardless of backend support."""

	impl = DateTime
	cache_ok = True

	def process_bind_param(self, value, dialect):
		if value is None:
			return None
		if value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc).replace(tzinfo=None)

	def process_result_value(self, value, dialect):
		if value is None:
			return None
		return value.replace(tzinfo=timezone.utc)


class User(Base):
	__tablename__ = "users"

	username = Column(String(64), primary_key=True)
	password = Column(String(128), nullable=False)
	first_name = Column(String(100), nullable=False)
	last_name = Column(String(100), nullable=False)
	phone = Column(String(32), nullable=False)
	join_at = Column(UTCDateTime, default=utc_now, nullable=False)
	last_login_at = Column(UTCDateTime, default=utc_now, nullable=False)

	sent_messages = relationship("Message", back_populates="from_user", foreign_keys="Message.from_username")
	received_messages = relationship("Message", back_populates="to_user", foreign_keys="Message.to_username")


class Message(Base):
	__tablename__ = "messages"

	id = Column(Integer, primary_key=True, autoincrement=True)
	from_username = Column(String(64), ForeignKey("users.username"), index=True, nullable=False)
	to_username = Column(String(64), ForeignKey("users.username"), index=True, nullable=False)
	body = Column(Text, nullable=False)
	sent_at = Column(UTCDateTime, default=utc_now, nullable=False)
	read_at = Column(UTCDateTime, nullable=True)

	from_user = relationship("User", foreign_keys=[from_username], back_populates="sent_messages")
	to_user = relationship("User", foreign_keys=[to_username], back_populates="received_messages")

Index("ix_messages_pair_time", Message.from_username, Message.to_username, Message.sent_at)
