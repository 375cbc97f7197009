import pytest
from json_render.env import (
	ENV_JSON_RENDER_API,
	ENV_JSON_RENDER_LOG_LEVEL,
	ENV_JSON_RENDER_TIMEOUT,
	ENV_JSON_RENDER_VALIDATION_PATH,
)
from json_render.errors import Diagnostic, errors


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):  # pyright: ignore[reportUnusedFunction]
	for name in (
		ENV_JSON_RENDER_API,
		ENV_JSON_RENDER_LOG_LEVEL,
		ENV_JSON_RENDER_TIMEOUT,
		ENV_JSON_RENDER_VALIDATION_PATH,
	):
		monkeypatch.delenv(name, raising=False)


@pytest.fixture
def diagnostics():
	received: list[Diagnostic] = []
	unsubscribe = errors.subscribe(received.append)
	yield received
	unsubscribe()
