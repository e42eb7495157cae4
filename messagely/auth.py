import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext

from .exceptions import InvalidCredentials, InvalidToken, UserNotFound, ValidationError
from .schemas import LoginStamp, NewUser, UserProfile
from .store import Store


USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")
# bcrypt only looks at the first 72 bytes of its input
MAX_PASSWORD_BYTES = 72
MAX_NAME_LENGTH = 100
MAX_PHONE_LENGTH = 32

Clock = Callable[[], datetime]


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


class PasswordHasher:
	def __init__(self, rounds: int = 12) -> None:
		self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

	def hash(self, password: str) -> str:
		return self._context.hash(password)

	def verify(self, password: str, password_hash: str) -> bool:
		return self._context.verify(password, password_hash)

	def dummy_verify(self) -> None:
		"""Spend the same time a real verification would, for unknown users."""
		self._context.dummy_verify()


class TokenSigner:
	"""Signs and verifies the ``{username}`` claim carried by session tokens."""

	def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: Optional[int] = None) -> None:
		self._secret_key = secret_key
		self._algorithm = algorithm
		self._expire_minutes = expire_minutes

	def sign(self, claims: Dict[str, str]) -> str:
		to_encode = dict(claims)
		now = datetime.now(timezone.utc)
		to_encode["iat"] = now
		if self._expire_minutes:
			to_encode["exp"] = now + timedelta(minutes=self._expire_minutes)
		return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

	def verify(self, token: str) -> str:
		"""Return the username a valid token was issued for."""
		try:
			payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
		except JWTError:
			raise InvalidToken()
		username = payload.get("username")
		if not isinstance(username, str) or not username:
			raise InvalidToken()
		return username


def _require_text(field: str, value: str, max_length: int) -> None:
	if not isinstance(value, str) or not value.strip():
		raise ValidationError(f"{field} is required", {"field": field})
	if len(value) > max_length:
		raise ValidationError(f"{field} is too long", {"field": field, "max_length": max_length})


class AuthService:
	"""Registers users, checks credentials and stamps logins.

	The login sequence is: verify credentials, stamp the login time, then
	hand the claims back to be signed. Nothing here retries; a failed
	attempt is retried by the caller as a whole.
	"""

	def __init__(self, store: Store, hasher: PasswordHasher, clock: Clock = utc_now) -> None:
		self.store = store
		self.hasher = hasher
		self.clock = clock

	def register(self, username: str, password: str, first_name: str, last_name: str, phone: str) -> UserProfile:
		if not isinstance(username, str) or not USERNAME_RE.match(username):
			raise ValidationError(
				"username must be 1-64 letters, digits, '_', '-' or '.'",
				{"field": "username"},
			)
		if not isinstance(password, str) or not password:
			raise ValidationError("password is required", {"field": "password"})
		if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
			raise ValidationError(
				f"password must be at most {MAX_PASSWORD_BYTES} bytes",
				{"field": "password"},
			)
		_require_text("first_name", first_name, MAX_NAME_LENGTH)
		_require_text("last_name", last_name, MAX_NAME_LENGTH)
		_require_text("phone", phone, MAX_PHONE_LENGTH)

		user = self.store.add_user(
			NewUser(
				username=username,
				password_hash=self.hasher.hash(password),
				first_name=first_name,
				last_name=last_name,
				phone=phone,
				join_at=self.clock(),
			)
		)
		logger.info("registered user {}", username)
		return UserProfile(
			username=user.username,
			first_name=user.first_name,
			last_name=user.last_name,
			phone=user.phone,
		)

	def authenticate(self, username: str, password: str) -> bool:
		credentials = self.store.get_credentials(username)
		if credentials is None:
			self.hasher.dummy_verify()
			logger.warning("failed login for unknown user {}", username)
			return False
		if not self.hasher.verify(password, credentials.password_hash):
			logger.warning("failed login for {}", username)
			return False
		return True

	def touch_login(self, username: str) -> LoginStamp:
		stamp = self.store.set_last_login(username, self.clock())
		if stamp is None:
			raise UserNotFound(username)
		logger.debug("login stamped for {} at {}", username, stamp.last_login_at)
		return stamp

	def token_claims(self, username: str) -> Dict[str, str]:
		return {"username": username}

	def login(self, username: str, password: str) -> Dict[str, str]:
		if not self.authenticate(username, password):
			raise InvalidCredentials()
		self.touch_login(username)
		logger.info("user {} logged in", username)
		return self.token_claims(username)

	def register_and_login(self, username: str, password: str, first_name: str, last_name: str, phone: str) -> Dict[str, str]:
		profile = self.register(username, password, first_name, last_name, phone)
		self.touch_login(profile.username)
		return self.token_claims(profile.username)
