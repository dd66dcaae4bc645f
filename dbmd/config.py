"""Connection properties loading and engine creation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional, Union

from dotenv import dotenv_values, load_dotenv
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError

from dbmd.exceptions import ConfigurationError
from dbmd.models import ConnectionProperties
from dbmd.utils.logger import setup_logging

# Load environment variables from .env if present.
load_dotenv()

logger = setup_logging(__name__)

URL_PROPERTY = "db.url"
USERNAME_PROPERTY = "db.username"
PASSWORD_PROPERTY = "db.password"
SCHEMA_PROPERTY = "db.schema"

ENV_OVERRIDES = {
    "url": "DBMD_DB_URL",
    "username": "DBMD_DB_USERNAME",
    "password": "DBMD_DB_PASSWORD",
}


def _override_with_env(values: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """Allow environment variables to override connection-sensitive fields."""
    overrides = dict(values)
    for key, env_name in ENV_OVERRIDES.items():
        env_value = os.getenv(env_name)
        if env_value:
            overrides[key] = env_value
    if overrides.get("url"):
        overrides["url"] = os.path.expandvars(overrides["url"])
    return overrides


def load_connection_properties(props_path: Union[str, Path]) -> ConnectionProperties:
    """Read a ``key=value`` connection properties file.

    ``db.url`` is required unless ``DBMD_DB_URL`` supplies it; ``db.username``,
    ``db.password`` and ``db.schema`` are optional.
    """
    path = Path(props_path)
    if not path.is_file():
        raise ConfigurationError(f"Connection properties file not found: {path}")

    raw = dotenv_values(path)
    values = _override_with_env({
        "url": raw.get(URL_PROPERTY),
        "username": raw.get(USERNAME_PROPERTY),
        "password": raw.get(PASSWORD_PROPERTY),
        "schema_name": raw.get(SCHEMA_PROPERTY),
    })
    if not values.get("url"):
        raise ConfigurationError(f"Connection properties file {path} is missing required property '{URL_PROPERTY}'")

    try:
        props = ConnectionProperties.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid connection properties in {path}: {exc}") from exc
    logger.debug("Loaded connection properties from %s", path)
    return props


def build_url(props: ConnectionProperties) -> URL:
    try:
        url = make_url(props.url)
    except ArgumentError as exc:
        raise ConfigurationError(f"Invalid database URL '{props.url}': {exc}") from exc
    if props.username is not None:
        url = url.set(username=props.username)
    if props.password is not None:
        url = url.set(password=props.password)
    return url


def create_metadata_engine(props: ConnectionProperties) -> Engine:
    url = build_url(props)
    logger.info("Connecting to %s", url.render_as_string(hide_password=True))
    try:
        return create_engine(url)
    except (ArgumentError, ImportError) as exc:
        raise ConfigurationError(f"Cannot create engine for '{url.render_as_string(hide_password=True)}': {exc}") from exc


__all__ = [
    "URL_PROPERTY",
    "USERNAME_PROPERTY",
    "PASSWORD_PROPERTY",
    "SCHEMA_PROPERTY",
    "load_connection_properties",
    "build_url",
    "create_metadata_engine",
]
