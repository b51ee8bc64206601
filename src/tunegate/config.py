"""Application configuration.

Values come from ``TUNEGATE_*`` environment variables, optionally loaded
from a ``.env`` file. Invalid configuration raises ``ConfigurationError``
before any network call is made.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from tunegate.auth.models.errors import ConfigurationError
from tunegate.auth.models.security import MAX_VERIFIER_LENGTH, MIN_VERIFIER_LENGTH
from tunegate.auth.services.security import validate_redirect_uri

ENV_PREFIX = "TUNEGATE_"


class AppConfig(BaseModel):
    """Client registration and endpoint settings."""

    client_id: str = Field(min_length=1)
    client_secret: SecretStr | None = None  # Catalog collaborator only
    redirect_uri: str
    auth_server_url: str
    api_base_url: str
    scopes: list[str] = Field(default_factory=list)
    verifier_length: int = Field(
        default=MAX_VERIFIER_LENGTH, ge=MIN_VERIFIER_LENGTH, le=MAX_VERIFIER_LENGTH
    )
    verifier_store_path: Path | None = None
    http_timeout: float = Field(default=30.0, gt=0)

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("client_id must not be blank")
        return v

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect(cls, v: str) -> str:
        if not validate_redirect_uri(v):
            raise ValueError(f"Redirect URI must use HTTPS or a loopback host: {v}")
        return v

    @field_validator("auth_server_url", "api_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"URL must be absolute http(s): {v}")
        return v.rstrip("/")

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: object) -> object:
        if isinstance(v, str):
            return v.replace(",", " ").split()
        return v

    @property
    def authorization_endpoint(self) -> str:
        return f"{self.auth_server_url}/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.auth_server_url}/api/token"

    @classmethod
    def load(cls, **values: object) -> AppConfig:
        """Build a config, converting validation failures to ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
    ) -> AppConfig:
        """Read configuration from the environment.

        Args:
            env: Mapping to read instead of ``os.environ`` (``.env`` is not
                loaded when given)
            env_file: Explicit ``.env`` path; defaults to searching upwards
                from the working directory
        """
        if env is None:
            load_dotenv(dotenv_path=env_file)
            env = os.environ

        values: dict[str, object] = {}
        for field_name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is not None and raw != "":
                values[field_name] = raw

        missing = [
            f"{ENV_PREFIX}{name.upper()}"
            for name in ("client_id", "redirect_uri", "auth_server_url", "api_base_url")
            if name not in values
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

        return cls.load(**values)
