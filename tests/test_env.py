import os

import pytest
from json_render.env import (
	DEFAULT_LOG_LEVEL,
	DEFAULT_TIMEOUT,
	DEFAULT_VALIDATION_PATH,
	ENV_JSON_RENDER_API,
	env,
)


def test_defaults():
	assert env.api is None
	assert env.timeout == DEFAULT_TIMEOUT
	assert env.log_level == DEFAULT_LOG_LEVEL
	assert env.validation_path == DEFAULT_VALIDATION_PATH


def test_overrides(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setenv("JSON_RENDER_TIMEOUT", "2.5")
	monkeypatch.setenv("JSON_RENDER_LOG_LEVEL", "debug")
	monkeypatch.setenv("JSON_RENDER_VALIDATION_PATH", "/ui/validation")
	assert env.timeout == 2.5
	assert env.log_level == "DEBUG"
	assert env.validation_path == "/ui/validation"


def test_invalid_timeout_falls_back(monkeypatch: pytest.MonkeyPatch):
	monkeypatch.setenv("JSON_RENDER_TIMEOUT", "soon")
	assert env.timeout == DEFAULT_TIMEOUT


def test_api_setter():
	env.api = "http://localhost:3000/api/generate"
	assert env.api == "http://localhost:3000/api/generate"
	env.api = None
	assert env.api is None
	assert ENV_JSON_RENDER_API not in os.environ
