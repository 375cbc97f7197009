"""
Centralized environment variable definitions and typed accessors.
"""

import os

ENV_JSON_RENDER_API = "JSON_RENDER_API"
ENV_JSON_RENDER_TIMEOUT = "JSON_RENDER_TIMEOUT"
ENV_JSON_RENDER_LOG_LEVEL = "JSON_RENDER_LOG_LEVEL"
ENV_JSON_RENDER_VALIDATION_PATH = "JSON_RENDER_VALIDATION_PATH"

DEFAULT_TIMEOUT = 60.0
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_VALIDATION_PATH = "/formValidation"


class JsonRenderEnv:
	@property
	def api(self) -> str | None:
		return os.environ.get(ENV_JSON_RENDER_API) or None

	@api.setter
	def api(self, value: str | None) -> None:
		if value is None:
			os.environ.pop(ENV_JSON_RENDER_API, None)
		else:
			os.environ[ENV_JSON_RENDER_API] = value

	@property
	def timeout(self) -> float:
		raw = os.environ.get(ENV_JSON_RENDER_TIMEOUT)
		if not raw:
			return DEFAULT_TIMEOUT
		try:
			return float(raw)
		except ValueError:
			return DEFAULT_TIMEOUT

	@property
	def log_level(self) -> str:
		return (os.environ.get(ENV_JSON_RENDER_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()

	@property
	def validation_path(self) -> str:
		return os.environ.get(ENV_JSON_RENDER_VALIDATION_PATH) or DEFAULT_VALIDATION_PATH


env = JsonRenderEnv()


__all__ = [
	"DEFAULT_LOG_LEVEL",
	"DEFAULT_TIMEOUT",
	"DEFAULT_VALIDATION_PATH",
	"ENV_JSON_RENDER_API",
	"ENV_JSON_RENDER_LOG_LEVEL",
	"ENV_JSON_RENDER_TIMEOUT",
	"ENV_JSON_RENDER_VALIDATION_PATH",
	"JsonRenderEnv",
	"env",
]
