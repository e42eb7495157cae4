from typing import List

from .exceptions import NoMessages, NoUsers, UserNotFound
from .schemas import ReceivedMessage, SentMessage, UserDetail, UserProfile
from .store import Store


class UserDirectory:
	"""Read access to user profiles and their message history.

	An empty list is a normal result for a user who exists. Only a username
	that is not in the store at all raises ``UserNotFound``. Set
	``empty_results_are_errors`` to get the older behavior where empty
	lists raise ``NoUsers``/``NoMessages`` instead.
	"""

	def __init__(self, store: Store, empty_results_are_errors: bool = False) -> None:
		self.store = store
		self.empty_results_are_errors = empty_results_are_errors

	def get_all(self) -> List[UserProfile]:
		users = self.store.list_profiles()
		if not users and self.empty_results_are_errors:
			raise NoUsers()
		return users

	def get(self, username: str) -> UserDetail:
		user = self.store.get_user(username)
		if user is None:
			raise UserNotFound(username)
		return user

	def messages_from(self, username: str) -> List[SentMessage]:
		messages = self.store.messages_from(username)
		if not messages:
			self._check_empty(username, "from")
		return messages

	def messages_to(self, username: str) -> List[ReceivedMessage]:
		messages = self.store.messages_to(username)
		if not messages:
			self._check_empty(username, "to")
		return messages

	def _check_empty(self, username: str, direction: str) -> None:
		if not self.store.user_exists(username):
			raise UserNotFound(username)
		if self.empty_results_are_errors:
			raise NoMessages(username, direction)
