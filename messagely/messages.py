from loguru import logger

from .auth import Clock, utc_now
from .exceptions import MessageNotFound, ValidationError
from .schemas import MessageDetail, MessageOut, ReadReceipt
from .store import Store


MAX_BODY_LENGTH = 4000


class MessageService:
	"""Composes messages and tracks when recipients read them."""

	def __init__(self, store: Store, clock: Clock = utc_now) -> None:
		self.store = store
		self.clock = clock

	def send(self, from_username: str, to_username: str, body: str) -> MessageOut:
		if not isinstance(body, str) or not body.strip():
			raise ValidationError("body is required", {"field": "body"})
		if len(body) > MAX_BODY_LENGTH:
			raise ValidationError(
				f"body must be at most {MAX_BODY_LENGTH} characters",
				{"field": "body", "max_length": MAX_BODY_LENGTH},
			)
		message = self.store.add_message(from_username, to_username, body, self.clock())
		logger.info("message {} sent {} -> {}", message.id, from_username, to_username)
		return message

	def get(self, message_id: int) -> MessageDetail:
		message = self.store.get_message(message_id)
		if message is None:
			raise MessageNotFound(message_id)
		return message

	def mark_read(self, message_id: int) -> ReadReceipt:
		# read_at is written once; later calls return the first stamp
		receipt = self.store.mark_read(message_id, self.clock())
		if receipt is None:
			raise MessageNotFound(message_id)
		return receipt
