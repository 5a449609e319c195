"""Connection settings, loaded from defaults, an optional .env file and the environment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

import voluptuous as vol
from dotenv import load_dotenv

from .api.exceptions import ClassrollValidationError
from .const import (
	DEFAULT_BASE_URL,
	DEFAULT_CONNECT_TIMEOUT,
	DEFAULT_HEALTH_TIMEOUT,
	DEFAULT_REQUEST_TIMEOUT,
	ENV_BASE_URL,
	ENV_CONNECT_TIMEOUT,
	ENV_HEALTH_TIMEOUT,
	ENV_REQUEST_TIMEOUT,
)

_LOGGER = logging.getLogger(__name__)

_TIMEOUT = vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False))

SETTINGS_SCHEMA = vol.Schema({
	vol.Optional(ENV_BASE_URL, default=DEFAULT_BASE_URL): vol.All(str, vol.Url()),
	vol.Optional(ENV_CONNECT_TIMEOUT, default=DEFAULT_CONNECT_TIMEOUT): _TIMEOUT,
	vol.Optional(ENV_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): _TIMEOUT,
	vol.Optional(ENV_HEALTH_TIMEOUT, default=DEFAULT_HEALTH_TIMEOUT): _TIMEOUT,
}, extra=vol.REMOVE_EXTRA)


@dataclass(frozen=True)
class Settings:
	"""Where the remote store lives and how long to wait for it."""
	base_url: str = DEFAULT_BASE_URL
	connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
	request_timeout: float = DEFAULT_REQUEST_TIMEOUT
	health_timeout: float = DEFAULT_HEALTH_TIMEOUT


def load_settings(
	env_file: Optional[Union[str, Path]] = None,
	environ: Optional[Mapping[str, str]] = None,
) -> Settings:
	"""Build Settings from the environment.

	Args:
		env_file: Optional .env path; when None python-dotenv searches upwards
			from the working directory. Ignored if environ is given.
		environ: Mapping to read instead of os.environ (used by tests).
	"""
	if environ is None:
		load_dotenv(env_file)
		environ = os.environ

	keys = [str(key) for key in SETTINGS_SCHEMA.schema]
	raw = {key: environ[key] for key in keys if environ.get(key)}
	try:
		data = SETTINGS_SCHEMA(raw)
	except vol.Invalid as err:
		field = str(err.path[0]) if err.path else "settings"
		raise ClassrollValidationError(field, f"Invalid configuration value for {field}: {err.msg}") from err

	settings = Settings(
		base_url=data[ENV_BASE_URL],
		connect_timeout=data[ENV_CONNECT_TIMEOUT],
		request_timeout=data[ENV_REQUEST_TIMEOUT],
		health_timeout=data[ENV_HEALTH_TIMEOUT],
	)
	_LOGGER.debug(f"Loaded settings: {settings}")
	return settings
