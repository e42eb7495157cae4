"""Store adapters.

Services talk to a ``Store`` and only ever see the pydantic shapes from
``messagely.schemas``; how rows are fetched and joined stays behind this
boundary. ``SqlStore`` is the SQLAlchemy-backed implementation used by the
application, ``MemoryStore`` an in-process fake with the same semantics.
"""

import itertools
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, aliased, sessionmaker

from .exceptions import DuplicateUser, MessagelyError, StoreError, UserNotFound
from .models import Message, User
from .schemas import (
	Credentials,
	LoginStamp,
	MessageDetail,
	MessageOut,
	NewUser,
	ReadReceipt,
	ReceivedMessage,
	SentMessage,
	UserDetail,
	UserProfile,
)


class Store(ABC):
	@abstractmethod
	def add_user(self, user: NewUser) -> UserDetail:
		"""Insert a user row. Raises ``DuplicateUser`` if the username is taken."""

	@abstractmethod
	def get_credentials(self, username: str) -> Optional[Credentials]:
		"""Return the stored password hash for ``username``, or None."""

	@abstractmethod
	def set_last_login(self, username: str, at: datetime) -> Optional[LoginStamp]:
		"""Move ``last_login_at`` forward to ``at``; never backwards.

		Returns None when the user does not exist.
		"""

	@abstractmethod
	def list_profiles(self) -> List[UserProfile]:
		"""All users' public profiles, in store order."""

	@abstractmethod
	def get_user(self, username: str) -> Optional[UserDetail]:
		pass

	@abstractmethod
	def user_exists(self, username: str) -> bool:
		pass

	@abstractmethod
	def messages_from(self, username: str) -> List[SentMessage]:
		"""Messages sent by ``username``, each joined with its recipient."""

	@abstractmethod
	def messages_to(self, username: str) -> List[ReceivedMessage]:
		"""Messages received by ``username``, each joined with its sender."""

	@abstractmethod
	def add_message(self, from_username: str, to_username: str, body: str, sent_at: datetime) -> MessageOut:
		"""Insert a message. Raises ``UserNotFound`` naming a missing participant."""

	@abstractmethod
	def get_message(self, message_id: int) -> Optional[MessageDetail]:
		pass

	@abstractmethod
	def mark_read(self, message_id: int, at: datetime) -> Optional[ReadReceipt]:
		"""Set ``read_at`` if it is still null; return the (possibly older) stamp."""


class SqlStore(Store):
	def __init__(self, session_factory: sessionmaker) -> None:
		self._session_factory = session_factory

	@contextmanager
	def _session(self) -> Iterator[Session]:
		session: Session = self._session_factory()
		try:
			yield session
			session.commit()
		except MessagelyError:
			session.rollback()
			raise
		except SQLAlchemyError as exc:
			session.rollback()
			logger.opt(exception=exc).error("store operation failed: {}", exc.__class__.__name__)
			raise StoreError() from exc
		finally:
			session.close()

	def add_user(self, user: NewUser) -> UserDetail:
		row = User(
			username=user.username,
			password=user.password_hash,
			first_name=user.first_name,
			last_name=user.last_name,
			phone=user.phone,
			join_at=user.join_at,
			last_login_at=user.join_at,
		)
		with self._session() as session:
			session.add(row)
			try:
				session.flush()
			except IntegrityError as exc:
				session.rollback()
				taken = session.scalar(select(User.username).where(User.username == user.username))
				if taken is not None:
					raise DuplicateUser(user.username) from exc
				logger.opt(exception=exc).error("user insert rejected for {}", user.username)
				raise StoreError(detail={"username": user.username}) from exc
			return UserDetail.model_validate(row)

	def get_credentials(self, username: str) -> Optional[Credentials]:
		with self._session() as session:
			row = session.execute(
				select(User.username, User.password).where(User.username == username)
			).first()
			if row is None:
				return None
			return Credentials(username=row.username, password_hash=row.password)

	def set_last_login(self, username: str, at: datetime) -> Optional[LoginStamp]:
		with self._session() as session:
			user = session.get(User, username)
			if user is None:
				return None
			if user.last_login_at is None or at > user.last_login_at:
				user.last_login_at = at
			session.flush()
			return LoginStamp(username=user.username, last_login_at=user.last_login_at)

	def list_profiles(self) -> List[UserProfile]:
		with self._session() as session:
			users = session.execute(select(User)).scalars().all()
			return [UserProfile.model_validate(u) for u in users]

	def get_user(self, username: str) -> Optional[UserDetail]:
		with self._session() as session:
			user = session.get(User, username)
			return UserDetail.model_validate(user) if user else None

	def user_exists(self, username: str) -> bool:
		with self._session() as session:
			return session.scalar(select(User.username).where(User.username == username)) is not None

	def messages_from(self, username: str) -> List[SentMessage]:
		to_user = aliased(User)
		stmt = (
			select(Message, to_user)
			.join(to_user, Message.to_username == to_user.username)
			.where(Message.from_username == username)
			.order_by(Message.id)
		)
		with self._session() as session:
			return [
				SentMessage(
					id=m.id,
					body=m.body,
					sent_at=m.sent_at,
					read_at=m.read_at,
					to_user=UserProfile.model_validate(u),
				)
				for m, u in session.execute(stmt).all()
			]

	def messages_to(self, username: str) -> List[ReceivedMessage]:
		from_user = aliased(User)
		stmt = (
			select(Message, from_user)
			.join(from_user, Message.from_username == from_user.username)
			.where(Message.to_username == username)
			.order_by(Message.id)
		)
		with self._session() as session:
			return [
				ReceivedMessage(
					id=m.id,
					body=m.body,
					sent_at=m.sent_at,
					read_at=m.read_at,
					from_user=UserProfile.model_validate(u),
				)
				for m, u in session.execute(stmt).all()
			]

	def add_message(self, from_username: str, to_username: str, body: str, sent_at: datetime) -> MessageOut:
		with self._session() as session:
			found = set(
				session.execute(
					select(User.username).where(User.username.in_([from_username, to_username]))
				).scalars()
			)
			for username in (from_username, to_username):
				if username not in found:
					raise UserNotFound(username)
			message = Message(
				from_username=from_username,
				to_username=to_username,
				body=body,
				sent_at=sent_at,
			)
			session.add(message)
			session.flush()
			return MessageOut.model_validate(message)

	def get_message(self, message_id: int) -> Optional[MessageDetail]:
		from_user = aliased(User)
		to_user = aliased(User)
		stmt = (
			select(Message, from_user, to_user)
			.join(from_user, Message.from_username == from_user.username)
			.join(to_user, Message.to_username == to_user.username)
			.where(Message.id == message_id)
		)
		with self._session() as session:
			row = session.execute(stmt).first()
			if row is None:
				return None
			m, f, t = row
			return MessageDetail(
				id=m.id,
				body=m.body,
				sent_at=m.sent_at,
				read_at=m.read_at,
				from_user=UserProfile.model_validate(f),
				to_user=UserProfile.model_validate(t),
			)

	def mark_read(self, message_id: int, at: datetime) -> Optional[ReadReceipt]:
		with self._session() as session:
			message = session.get(Message, message_id)
			if message is None:
				return None
			if message.read_at is None:
				message.read_at = at
				session.flush()
			return ReadReceipt(id=message.id, read_at=message.read_at)


class MemoryStore(Store):
	"""Dict-backed store for tests and local experiments."""

	def __init__(self) -> None:
		self._lock = threading.Lock()
		self._users: Dict[str, dict] = {}
		self._messages: Dict[int, dict] = {}
		self._ids = itertools.count(1)

	def _profile(self, username: str) -> UserProfile:
		return UserProfile(**self._users[username])

	def add_user(self, user: NewUser) -> UserDetail:
		with self._lock:
			if user.username in self._users:
				raise DuplicateUser(user.username)
			self._users[user.username] = {
				"username": user.username,
				"password": user.password_hash,
				"first_name": user.first_name,
				"last_name": user.last_name,
				"phone": user.phone,
				"join_at": user.join_at,
				"last_login_at": user.join_at,
			}
			return UserDetail(**self._users[user.username])

	def get_credentials(self, username: str) -> Optional[Credentials]:
		with self._lock:
			row = self._users.get(username)
			if row is None:
				return None
			return Credentials(username=username, password_hash=row["password"])

	def set_last_login(self, username: str, at: datetime) -> Optional[LoginStamp]:
		with self._lock:
			row = self._users.get(username)
			if row is None:
				return None
			if at > row["last_login_at"]:
				row["last_login_at"] = at
			return LoginStamp(username=username, last_login_at=row["last_login_at"])

	def list_profiles(self) -> List[UserProfile]:
		with self._lock:
			return [self._profile(username) for username in self._users]

	def get_user(self, username: str) -> Optional[UserDetail]:
		with self._lock:
			row = self._users.get(username)
			return UserDetail(**row) if row else None

	def user_exists(self, username: str) -> bool:
		with self._lock:
			return username in self._users

	def messages_from(self, username: str) -> List[SentMessage]:
		with self._lock:
			return [
				SentMessage(
					id=m["id"],
					body=m["body"],
					sent_at=m["sent_at"],
					read_at=m["read_at"],
					to_user=self._profile(m["to_username"]),
				)
				for m in self._messages.values()
				if m["from_username"] == username
			]

	def messages_to(self, username: str) -> List[ReceivedMessage]:
		with self._lock:
			return [
				ReceivedMessage(
					id=m["id"],
					body=m["body"],
					sent_at=m["sent_at"],
					read_at=m["read_at"],
					from_user=self._profile(m["from_username"]),
				)
				for m in self._messages.values()
				if m["to_username"] == username
			]

	def add_message(self, from_username: str, to_username: str, body: str, sent_at: datetime) -> MessageOut:
		with self._lock:
			for username in (from_username, to_username):
				if username not in self._users:
					raise UserNotFound(username)
			message_id = next(self._ids)
			self._messages[message_id] = {
				"id": message_id,
				"from_username": from_username,
				"to_username": to_username,
				"body": body,
				"sent_at": sent_at,
				"read_at": None,
			}
			return MessageOut(**self._messages[message_id])

	def get_message(self, message_id: int) -> Optional[MessageDetail]:
		with self._lock:
			m = self._messages.get(message_id)
			if m is None:
				return None
			return MessageDetail(
				id=m["id"],
				body=m["body"],
				sent_at=m["sent_at"],
				read_at=m["read_at"],
				from_user=self._profile(m["from_username"]),
				to_user=self._profile(m["to_username"]),
			)

	def mark_read(self, message_id: int, at: datetime) -> Optional[ReadReceipt]:
		with self._lock:
			m = self._messages.get(message_id)
			if m is None:
				return None
			if m["read_at"] is None:
				m["read_at"] = at
			return ReadReceipt(id=m["id"], read_at=m["read_at"])
