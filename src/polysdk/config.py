"""Configuration and wiring for polyapi data model clients."""

import json
import logging
import os
import pathlib

import pydantic
import structlog

from . import polyapi

CONFIG_ENV_VAR = "POLYSDK_CONFIG_PATH"
logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Configuration for a polyapi data model client."""

    base_url: str = pydantic.Field(
        polyapi.DEFAULT_BASE_URL,
        description="Base URL of the polyapi gateway",
        min_length=1,
    )
    username: str = pydantic.Field(description="Login user name")
    password: pydantic.SecretStr = pydantic.Field(description="Login password")
    login_type: polyapi.LoginType = pydantic.Field(
        polyapi.LoginType.PASSWORD,
        description="Login method",
    )
    app_id: str | None = pydantic.Field(None, description="Default application id")
    model_code: str | None = pydantic.Field(None, description="Default model code")
    timeout: float = pydantic.Field(
        polyapi.DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            msg = f"Unknown log level: {value}"
            raise ValueError(msg)
        return level


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ClientConfig:
    """Load a client configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a JSON object.
        pydantic.ValidationError: If fields are missing or invalid.
    """
    path = pathlib.Path(config_path)
    if not path.is_file():
        msg = f"Configuration file not found: {config_path} (set {CONFIG_ENV_VAR} or pass a path)"
        raise FileNotFoundError(msg)

    data = json.loads(path.read_text())
    if not isinstance(data, dict):
        msg = f"polysdk config {config_path} must contain a JSON object"
        raise ValueError(msg)

    return ClientConfig(**data)


def create_credential(config: ClientConfig) -> polyapi.Credential:
    """Construct a login credential from validated config."""
    return polyapi.Credential(
        username=config.username,
        password=config.password.get_secret_value(),
        login_type=config.login_type,
        base_url=config.base_url,
        timeout=config.timeout,
    )


def create_data_model_client(
    config: ClientConfig,
    app_id: str | None = None,
    model_code: str | None = None,
    credential: polyapi.Credential | None = None,
) -> polyapi.QxDataModelClient:
    """Construct a data model client from validated config.

    Args:
        config: Client configuration.
        app_id: Application id (default: ``config.app_id``).
        model_code: Model code (default: ``config.model_code``).
        credential: Credential to share with other clients (default: a new
            one built from config).

    Returns:
        Client for the resolved (app id, model code) pair.

    Raises:
        ValueError: If neither the arguments nor config name an app id and
            a model code.
    """
    resolved_app_id = app_id or config.app_id
    resolved_model_code = model_code or config.model_code
    if not resolved_app_id or not resolved_model_code:
        msg = "app_id and model_code must be set in config or passed explicitly"
        raise ValueError(msg)

    client = polyapi.QxDataModelClient(
        credential=credential or create_credential(config),
        app_id=resolved_app_id,
        model_code=resolved_model_code,
        base_url=config.base_url,
        timeout=config.timeout,
    )
    logger.info(
        "Created data model client",
        base_url=config.base_url,
        app_id=resolved_app_id,
        model_code=resolved_model_code,
    )
    return client


def create_client(config_path: str | None = None) -> polyapi.QxDataModelClient:
    """Create a data model client using a config path or environment default."""
    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, "polysdk.json")
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    return create_data_model_client(config)
