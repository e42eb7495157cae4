import logging
import sys

from loguru import logger


class InterceptHandler(logging.Handler):
	"""Forward stdlib log records (SQLAlchemy, uvicorn) to loguru."""

	def emit(self, record: logging.LogRecord) -> None:
		try:
			level = logger.level(record.levelname).name
		except ValueError:
			level = record.levelno

		frame, depth = logging.currentframe(), 2
		while frame and frame.f_code.co_filename == logging.__file__:
			frame = frame.f_back
			depth += 1

		logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, json_format: bool = False) -> None:
	logger.remove()
	logger.add(sys.stderr, level=level, serialize=json_format)

	logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

	for name in ("sqlalchemy.engine", "uvicorn.access", "httpx"):
		logging.getLogger(name).setLevel(logging.WARNING)
