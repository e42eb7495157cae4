from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class UserProfile(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	username: str
	first_name: str
	last_name: str
	phone: str


class UserDetail(UserProfile):
	join_at: datetime
	last_login_at: datetime


class NewUser(BaseModel):
	username: str
	password_hash: str
	first_name: str
	last_name: str
	phone: str
	join_at: datetime


class Credentials(BaseModel):
	username: str
	password_hash: str


class LoginStamp(BaseModel):
	username: str
	last_login_at: datetime


class SentMessage(BaseModel):
	id: int
	body: str
	sent_at: datetime
	read_at: Optional[datetime] = None
	to_user: UserProfile


class ReceivedMessage(BaseModel):
	id: int
	body: str
	sent_at: datetime
	read_at: Optional[datetime] = None
	from_user: UserProfile


class MessageOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: int
	from_username: str
	to_username: str
	body: str
	sent_at: datetime
	read_at: Optional[datetime] = None


class MessageDetail(BaseModel):
	id: int
	body: str
	sent_at: datetime
	read_at: Optional[datetime] = None
	from_user: UserProfile
	to_user: UserProfile


class ReadReceipt(BaseModel):
	id: int
	read_at: datetime


# Request / response bodies for the HTTP layer


class LoginRequest(BaseModel):
	username: str
	password: str


class RegisterRequest(BaseModel):
	username: str
	password: str
	first_name: str
	last_name: str
	phone: str


class Token(BaseModel):
	token: str


class MessageCreate(BaseModel):
	to_username: str
	body: str


class UserList(BaseModel):
	users: List[UserProfile]


class UserEnvelope(BaseModel):
	user: UserDetail


class SentMessageList(BaseModel):
	messages: List[SentMessage]


class ReceivedMessageList(BaseModel):
	messages: List[ReceivedMessage]
