"""Configuration models and environment binding for vkv commands.

Every command option can be supplied through an environment variable named
``VKV_<COMMAND>_<OPTION>`` (e.g. ``VKV_EXPORT_FORMAT``); command line flags
take precedence. Connection settings use ``STORE_*`` with ``VAULT_*``
fallbacks.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import BadOptionComboError, ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off", ""}

DEFAULT_SNAPSHOT_DIR = "./vkv-snapshot-export"


def env_name(command: str, option: str) -> str:
    """Build the environment variable name for a command option."""
    return f"VKV_{command}_{option}".upper().replace("-", "_")


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    return default if value is None else value


def env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable.

    Raises:
        ConfigurationError: If the value is not a recognised boolean
    """
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"invalid boolean value {value!r} for {name}", details={"variable": name}
    )


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable.

    Raises:
        ConfigurationError: If the value is not an integer
    """
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(
            f"invalid integer value {value!r} for {name}", details={"variable": name}
        ) from e


def _first_env(*names: str) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class ClientConfig(BaseModel):
    """Connection settings for the secret store."""

    address: Optional[str] = None
    token: Optional[str] = None
    namespace: str = ""
    skip_verify: bool = False
    login_command: Optional[str] = None
    timeout: int = 30

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load connection settings from STORE_* / VAULT_* variables."""
        skip_verify = _first_env("STORE_SKIP_TLS_VERIFY", "VAULT_SKIP_VERIFY")
        return cls(
            address=_first_env("STORE_ADDRESS", "VAULT_ADDR"),
            token=_first_env("STORE_TOKEN", "VAULT_TOKEN"),
            namespace=_first_env("STORE_NAMESPACE", "VAULT_NAMESPACE") or "",
            skip_verify=(skip_verify or "").strip().lower() in _TRUE_VALUES,
            login_command=os.getenv("VKV_LOGIN_COMMAND") or None,
            timeout=env_int("VKV_CLIENT_TIMEOUT", 30),
        )

    @field_validator("namespace")
    @classmethod
    def strip_namespace(cls, value: str) -> str:
        return (value or "").strip("/")


class RefresherConfig(BaseModel):
    """Token refresher settings."""

    enabled: bool = True
    interval: float = Field(default=10.0, gt=0)
    increment: int = Field(default=30, gt=0)

    @classmethod
    def from_env(cls) -> "RefresherConfig":
        return cls(
            enabled=env_bool("VKV_LEASE_REFRESHER_ENABLED", True),
            interval=env_int("VKV_RENEWAL_INTERVAL", 10),
            increment=env_int("VKV_RENEWAL_INCREMENT", 30),
        )


class ExportOptions(BaseModel):
    """Options of the export command."""

    path: Optional[str] = None
    engine_path: Optional[str] = None
    format: str = "base"
    only_keys: bool = False
    only_paths: bool = False
    show_values: bool = False
    max_value_length: int = 12
    template_file: Optional[str] = None
    template_string: Optional[str] = None
    show_version: bool = False
    show_metadata: bool = False
    include_path: bool = False
    upper: bool = False
    skip_errors: bool = False

    def validate_combination(self) -> None:
        """Check options that depend on each other.

        Raises:
            BadOptionComboError: When no path is given or both template
                sources are set
        """
        if not self.path and not self.engine_path:
            raise BadOptionComboError("no path or engine-path specified")
        if self.template_file and self.template_string:
            raise BadOptionComboError(
                "cannot specify both --template-file and --template-string"
            )

    def template_text(self) -> Optional[str]:
        """Return the template source, reading the template file if set.

        Raises:
            ConfigurationError: If the template file cannot be read
        """
        if self.template_string:
            return self.template_string
        if not self.template_file:
            return None
        try:
            return Path(self.template_file).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"cannot read template file {self.template_file}: {e}",
                details={"template_file": self.template_file},
            ) from e


class ImportOptions(BaseModel):
    """Options of the import command."""

    path: Optional[str] = None
    engine_path: Optional[str] = None
    file: Optional[str] = None
    from_stdin: bool = False
    force: bool = False
    dry_run: bool = False
    silent: bool = False
    show_values: bool = False
    max_value_length: int = 12

    def validate_combination(self) -> None:
        """Check options that depend on each other.

        Raises:
            BadOptionComboError: On force with dry-run, silent with dry-run or
                a missing destination
        """
        if self.file and self.from_stdin:
            raise BadOptionComboError("cannot specify both --file and \"-\" (stdin)")
        if self.force and self.dry_run:
            raise BadOptionComboError("cannot specify both --force and --dry-run")
        if self.silent and self.dry_run:
            raise BadOptionComboError("cannot specify both --silent and --dry-run")
        if not self.path and not self.engine_path:
            raise BadOptionComboError("no path or engine-path specified")


class SnapshotSaveOptions(BaseModel):
    """Options of the snapshot save command."""

    namespace: str = ""
    destination: str = DEFAULT_SNAPSHOT_DIR
    skip_errors: bool = False


class SnapshotRestoreOptions(BaseModel):
    """Options of the snapshot restore command."""

    source: str = DEFAULT_SNAPSHOT_DIR


class ListOptions(BaseModel):
    """Options shared by the list/find engines and namespaces commands."""

    namespace: str = ""
    regex: Optional[str] = None
    format: str = "base"
    all: bool = False
    include_ns_prefix: bool = False


class FindSecretsOptions(BaseModel):
    """Options of the find secrets command."""

    pattern: str
    no_header: bool = False
    print_url: bool = False
    no_match_kind: bool = False


class ServerOptions(BaseModel):
    """Options of the server command."""

    port: int = Field(default=8080, gt=0, lt=65536)
    host: str = "0.0.0.0"
    path: Optional[str] = None
    engine_path: Optional[str] = None
    skip_errors: bool = False

    def validate_combination(self) -> None:
        if not self.path and not self.engine_path:
            raise BadOptionComboError("no path or engine-path specified")
