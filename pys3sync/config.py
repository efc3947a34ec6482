"""Configuration management for pys3sync.

Credentials and the endpoint are resolved from, in increasing priority:

1. a JSON credential file (``~/.config/pys3sync/credential.json``)
2. an s3cmd-style INI file (``~/.s3cfg``), used only if the JSON file is absent
3. environment variables
4. explicit overrides (command-line options)
"""

import configparser
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from .exceptions import S3ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "pys3sync"
DEFAULT_CREDENTIAL_FILE = DEFAULT_CONFIG_DIR / "credential.json"
DEFAULT_S3CFG_FILE = Path.home() / ".s3cfg"

ENV_ACCESS_KEY = ("AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY")
ENV_SECRET_KEY = ("AWS_SECRET_ACCESS_KEY", "AWS_SECRET_KEY")
ENV_ENDPOINT = ("AWS_S3_ENDPOINT",)
ENV_REGION = ("AWS_REGION", "AWS_S3_REGION")


def _first_env(names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


@dataclass(frozen=True)
class S3Settings:
    """Resolved connection settings handed to the S3 client."""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    endpoint: Optional[str] = None
    region: Optional[str] = None
    force_path_style: bool = False
    debug: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)


class Config:
    """Loads connection settings from config files and the environment."""

    def __init__(
        self,
        credential_file: Optional[Path] = None,
        s3cfg_file: Optional[Path] = None,
    ):
        """Initialize configuration.

        Args:
            credential_file: JSON credential file (default:
                ~/.config/pys3sync/credential.json)
            s3cfg_file: s3cmd-style INI file (default: ~/.s3cfg)
        """
        self.credential_file = credential_file or DEFAULT_CREDENTIAL_FILE
        self.s3cfg_file = s3cfg_file or DEFAULT_S3CFG_FILE

    def get_config_path(self) -> Path:
        """Get the path of the JSON credential file."""
        return self.credential_file

    def _load_json(self) -> Optional[S3Settings]:
        if not self.credential_file.exists():
            return None
        try:
            with open(self.credential_file, encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
        except json.JSONDecodeError as e:
            raise S3ConfigError(
                f"Invalid credential file {self.credential_file}: {e}"
            ) from e
        logger.debug(f"Loaded credentials from {self.credential_file}")
        return S3Settings(
            access_key=data.get("access_key_id") or None,
            secret_key=data.get("secret_access_key") or None,
            endpoint=data.get("endpoint") or data.get("storage_api") or None,
            region=data.get("region") or None,
            force_path_style=bool(data.get("force_path_style", False)),
            debug=bool(data.get("debug", False)),
        )

    def _load_s3cfg(self) -> Optional[S3Settings]:
        if not self.s3cfg_file.exists():
            return None
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read(self.s3cfg_file, encoding="utf-8")
        except configparser.Error as e:
            raise S3ConfigError(f"Invalid s3cfg file {self.s3cfg_file}: {e}") from e
        if not parser.has_section("default"):
            return None
        section = parser["default"]

        endpoint = None
        region = section.get("bucket_location") or None
        host_base = section.get("host_base")
        if host_base and not region:
            use_https = section.get("use_https", "True")
            scheme = "http" if use_https == "False" else "https"
            endpoint = f"{scheme}://{host_base}/"

        logger.debug(f"Loaded credentials from {self.s3cfg_file}")
        return S3Settings(
            access_key=section.get("access_key") or None,
            secret_key=section.get("secret_key") or None,
            endpoint=endpoint,
            region=region,
            debug=section.get("verbosity") == "DEBUG",
        )

    def load(self) -> S3Settings:
        """Load settings from the files and the environment.

        Returns:
            S3Settings with environment variables applied over file values
        """
        settings = self._load_json() or self._load_s3cfg() or S3Settings()
        env_overrides = {
            "access_key": _first_env(ENV_ACCESS_KEY),
            "secret_key": _first_env(ENV_SECRET_KEY),
            "endpoint": _first_env(ENV_ENDPOINT),
            "region": _first_env(ENV_REGION),
        }
        return replace(
            settings, **{k: v for k, v in env_overrides.items() if v is not None}
        )

    def to_settings(
        self,
        access_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        region: Optional[str] = None,
        force_path_style: Optional[bool] = None,
    ) -> S3Settings:
        """Resolve final settings with explicit overrides on top.

        Args:
            access_key: Access key ID override
            secret_key: Secret access key override
            endpoint: Endpoint URL override
            region: Region override
            force_path_style: Addressing style override (None keeps the loaded value)

        Returns:
            Fully resolved S3Settings
        """
        settings = self.load()
        overrides: dict[str, Any] = {
            "access_key": access_key,
            "secret_key": secret_key,
            "endpoint": endpoint,
            "region": region,
            "force_path_style": force_path_style or None,
        }
        return replace(
            settings, **{k: v for k, v in overrides.items() if v is not None}
        )

    def is_configured(self) -> bool:
        """Check whether credentials can be resolved without overrides."""
        return self.load().has_credentials


# Default configuration used by the CLI
config = Config()
