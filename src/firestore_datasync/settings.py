"""
Settings Schema for YAML-based Service Configuration.

Provides Pydantic models for the Firestore connection and for the remote
services an application declares, plus a loader for YAML settings files.

Example YAML:
    firestore:
      project: "${FIREBASE_PROJECT_ID}"
      emulator_host: "${FIRESTORE_EMULATOR_HOST:-}"
      credentials_path: "${GOOGLE_APPLICATION_CREDENTIALS:-}"

    services:
      profile:
        kind: document
        collection_path: "users"
      products:
        kind: collection
        collection_path: "products"
        manager_key: "products"
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def expand_env_vars(value: Any) -> Any:
    """
    Expand environment variables in a value.

    Supports ${VAR} and ${VAR:-default} syntax, recursively through dicts
    and lists.
    """
    if isinstance(value, str):

        def replacer(match):
            default = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(match.group(1), default)

        return _ENV_PATTERN.sub(replacer, value)
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    return value


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class FirestoreSettings(BaseModel):
    """
    Connection settings for the default Firestore client.

    All fields fall back to the environment (FIREBASE_PROJECT_ID,
    FIRESTORE_EMULATOR_HOST, GOOGLE_APPLICATION_CREDENTIALS) when None.

    Example:
        >>> settings = FirestoreSettings(emulator_host="localhost:8080")
        >>> settings.project is None
        True
    """

    project: Optional[str] = Field(default=None, description="Firebase project ID")
    emulator_host: Optional[str] = Field(
        default=None, description="Firestore emulator address, e.g. localhost:8080"
    )
    credentials_path: Optional[str] = Field(
        default=None, description="Path to a service account JSON file"
    )

    @field_validator("project", "emulator_host", "credentials_path", mode="before")
    @classmethod
    def validate_optional_str(cls, v):
        """Treat empty strings (e.g. from ${VAR:-}) as unset."""
        return _blank_to_none(v)


class ServiceKind(str, Enum):
    """Remote service contract a declared service implements."""

    DOCUMENT = "document"
    COLLECTION = "collection"


class ServiceSettings(BaseModel):
    """
    Declaration of one remote service.

    Attributes:
        kind: document or collection
        collection_path: Fixed Firestore collection path
        manager_key: Grouping key passed through to the caller's local
                     persistence; defaults to the collection path
    """

    kind: ServiceKind = Field(default=ServiceKind.COLLECTION)
    collection_path: str = Field(..., min_length=1)
    manager_key: Optional[str] = Field(default=None)

    @field_validator("kind", mode="before")
    @classmethod
    def validate_kind(cls, v):
        """Accept string values and convert to enum."""
        if isinstance(v, str):
            try:
                return ServiceKind(v.lower())
            except ValueError:
                valid = [e.value for e in ServiceKind]
                raise ValueError(f"Invalid service kind '{v}'. Valid options: {valid}")
        return v

    @field_validator("collection_path", mode="before")
    @classmethod
    def validate_collection_path(cls, v):
        if isinstance(v, str):
            return v.strip("/")
        return v

    @property
    def resolved_manager_key(self) -> str:
        return self.manager_key or self.collection_path


class DataSyncSettings(BaseModel):
    """Top-level settings file model."""

    firestore: FirestoreSettings = Field(default_factory=FirestoreSettings)
    services: Dict[str, ServiceSettings] = Field(default_factory=dict)


def parse_settings(config: Optional[Dict[str, Any]]) -> DataSyncSettings:
    """
    Validate a settings mapping, expanding ${VAR} references first.

    Raises:
        pydantic.ValidationError: If the configuration is invalid.
    """
    return DataSyncSettings.model_validate(expand_env_vars(config or {}))


def load_settings(path: Union[str, Path]) -> DataSyncSettings:
    """
    Load settings from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a YAML mapping.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        config = yaml.safe_load(f)
    if config is not None and not isinstance(config, dict):
        raise ValueError(f"Settings file {path} must contain a mapping, got {type(config).__name__}")
    return parse_settings(config)
