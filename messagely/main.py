from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .auth import AuthService, PasswordHasher, TokenSigner
from .config import Settings
from .database import init_db, make_engine, make_session_factory
from .directory import UserDirectory
from .exceptions import MessagelyError
from .logging import setup_logging
from .messages import MessageService
from .routes import auth_router, messages_router, users_router
from .store import SqlStore, Store


def _error_body(message: str, status: int, detail=None) -> dict:
	return {"error": {"message": message, "status": status, "detail": detail}}


async def messagely_error_handler(request: Request, exc: MessagelyError) -> JSONResponse:
	if exc.status_code >= 500:
		logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
	else:
		logger.warning("{} {} -> {}: {}", request.method, request.url.path, exc.status_code, exc.message)
	headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
	return JSONResponse(
		status_code=exc.status_code,
		content=_error_body(exc.message, exc.status_code, exc.detail),
		headers=headers,
	)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
	errors = [
		{"field": ".".join(str(x) for x in error["loc"][1:]), "message": error["msg"]}
		for error in exc.errors()
	]
	return JSONResponse(status_code=400, content=_error_body("Invalid request", 400, {"errors": errors}))


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
	"""Build the application; with no ``store`` given, use SQL at ``settings.database_url``."""
	settings = settings or Settings()
	setup_logging(settings.log_level, json_format=settings.log_json)

	if store is None:
		engine = make_engine(settings.database_url, echo=settings.debug)
		init_db(engine)
		store = SqlStore(make_session_factory(engine))

	app = FastAPI(title=settings.app_name)

	app.add_middleware(
		CORSMiddleware,
		allow_origins=["*"],
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)

	app.state.settings = settings
	app.state.token_signer = TokenSigner(
		settings.secret_key.get_secret_value(),
		algorithm=settings.token_algorithm,
		expire_minutes=settings.token_expire_minutes,
	)
	app.state.auth_service = AuthService(store, PasswordHasher(rounds=settings.bcrypt_rounds))
	app.state.directory = UserDirectory(store, empty_results_are_errors=settings.empty_results_are_errors)
	app.state.message_service = MessageService(store)

	app.add_exception_handler(MessagelyError, messagely_error_handler)
	app.add_exception_handler(RequestValidationError, validation_error_handler)

	app.include_router(auth_router)
	app.include_router(users_router)
	app.include_router(messages_router)

	@app.get("/health")
	def health_check():
		return {"status": "ok"}

	logger.info("{} started", settings.app_name)
	return app
