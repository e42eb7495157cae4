from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker


Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	cursor = dbapi_connection.cursor()
	cursor.execute("PRAGMA foreign_keys=ON")
	cursor.close()


def make_engine(database_url: str, echo: bool = False) -> Engine:
	connect_args = {}
	if database_url.startswith("sqlite"):
		connect_args["check_same_thread"] = False
	engine = create_engine(database_url, echo=echo, pool_pre_ping=True, connect_args=connect_args)
	if engine.dialect.name == "sqlite":
		event.listen(engine, "connect", _enable_sqlite_foreign_keys)
	return engine


def make_session_factory(engine: Engine) -> sessionmaker:
	return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
	# registers the tables on Base.metadata
	from . import models  # noqa: F401

	Base.metadata.create_all(bind=engine)
