from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordBearer

from .auth import AuthService, TokenSigner
from .directory import UserDirectory
from .exceptions import Forbidden
from .messages import MessageService
from .schemas import (
	LoginRequest,
	MessageCreate,
	ReceivedMessageList,
	RegisterRequest,
	SentMessageList,
	Token,
	UserEnvelope,
	UserList,
)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_auth_service(request: Request) -> AuthService:
	return request.app.state.auth_service


def get_directory(request: Request) -> UserDirectory:
	return request.app.state.directory


def get_message_service(request: Request) -> MessageService:
	return request.app.state.message_service


def get_token_signer(request: Request) -> TokenSigner:
	return request.app.state.token_signer


def get_current_username(
	token: str = Depends(oauth2_scheme),
	signer: TokenSigner = Depends(get_token_signer),
) -> str:
	return signer.verify(token)


def ensure_correct_user(username: str, current_username: str = Depends(get_current_username)) -> str:
	if username != current_username:
		raise Forbidden()
	return username


auth_router = APIRouter(prefix="/auth", tags=["auth"])


@auth_router.post("/login", response_model=Token)
def login(
	payload: LoginRequest,
	auth: AuthService = Depends(get_auth_service),
	signer: TokenSigner = Depends(get_token_signer),
):
	claims = auth.login(payload.username, payload.password)
	return Token(token=signer.sign(claims))


@auth_router.post("/register", response_model=Token)
def register(
	payload: RegisterRequest,
	auth: AuthService = Depends(get_auth_service),
	signer: TokenSigner = Depends(get_token_signer),
):
	claims = auth.register_and_login(
		payload.username,
		payload.password,
		payload.first_name,
		payload.last_name,
		payload.phone,
	)
	return Token(token=signer.sign(claims))


users_router = APIRouter(prefix="/users", tags=["users"])


@users_router.get("", response_model=UserList)
def list_users(
	_: str = Depends(get_current_username),
	directory: UserDirectory = Depends(get_directory),
):
	return UserList(users=directory.get_all())


@users_router.get("/{username}", response_model=UserEnvelope)
def get_user(
	username: str = Depends(ensure_correct_user),
	directory: UserDirectory = Depends(get_directory),
):
	return UserEnvelope(user=directory.get(username))


@users_router.get("/{username}/from", response_model=SentMessageList)
def messages_from(
	username: str = Depends(ensure_correct_user),
	directory: UserDirectory = Depends(get_directory),
):
	return SentMessageList(messages=directory.messages_from(username))


@users_router.get("/{username}/to", response_model=ReceivedMessageList)
def messages_to(
	username: str = Depends(ensure_correct_user),
	directory: UserDirectory = Depends(get_directory),
):
	return ReceivedMessageList(messages=directory.messages_to(username))


messages_router = APIRouter(prefix="/messages", tags=["messages"])


@messages_router.post("")
def send_message(
	payload: MessageCreate,
	current_username: str = Depends(get_current_username),
	service: MessageService = Depends(get_message_service),
):
	message = service.send(current_username, payload.to_username, payload.body)
	return {"message": message}


@messages_router.get("/{message_id}")
def get_message(
	message_id: int,
	current_username: str = Depends(get_current_username),
	service: MessageService = Depends(get_message_service),
):
	message = service.get(message_id)
	if current_username not in (message.from_user.username, message.to_user.username):
		raise Forbidden("Cannot read this message")
	return {"message": message}


@messages_router.post("/{message_id}/read")
def mark_read(
	message_id: int,
	current_username: str = Depends(get_current_username),
	service: MessageService = Depends(get_message_service),
):
	message = service.get(message_id)
	if current_username != message.to_user.username:
		raise Forbidden("Cannot set this message to read")
	return {"message": service.mark_read(message_id)}
