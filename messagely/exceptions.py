from typing import Any, Dict, Optional


class MessagelyError(Exception):
	"""Base for every error the service surfaces to its callers."""

	status_code = 400

	def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None) -> None:
		self.message = message
		self.detail = detail
		super().__init__(message)


class ValidationError(MessagelyError):
	status_code = 400


class DuplicateUser(MessagelyError):
	status_code = 400

	def __init__(self, username: str) -> None:
		super().__init__(f"Username already taken: {username}", {"username": username})
		self.username = username


class InvalidCredentials(MessagelyError):
	status_code = 400

	def __init__(self) -> None:
		super().__init__("Invalid user/password")


class InvalidToken(MessagelyError):
	status_code = 401

	def __init__(self, message: str = "Could not validate credentials") -> None:
		super().__init__(message)


class Forbidden(MessagelyError):
	status_code = 403

	def __init__(self, message: str = "Unauthorized") -> None:
		super().__init__(message)


class UserNotFound(MessagelyError):
	status_code = 404

	def __init__(self, username: str) -> None:
		super().__init__(f"No such user: {username}", {"username": username})
		self.username = username


class NoUsers(MessagelyError):
	status_code = 404

	def __init__(self) -> None:
		super().__init__("No users")


class NoMessages(MessagelyError):
	status_code = 404

	def __init__(self, username: str, direction: str) -> None:
		super().__init__(
			f"No messages {direction} this user: {username}",
			{"username": username, "direction": direction},
		)
		self.username = username


class MessageNotFound(MessagelyError):
	status_code = 404

	def __init__(self, message_id: int) -> None:
		super().__init__(f"No such message: {message_id}", {"id": message_id})


class StoreError(MessagelyError):
	"""The underlying persistence layer failed; the operation did not happen."""

	status_code = 500

	def __init__(self, message: str = "Store failure", detail: Optional[Dict[str, Any]] = None) -> None:
		super().__init__(message, detail)
