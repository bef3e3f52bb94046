# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Settings for an installer run, loaded from an optional env file, the process
environment and command line overrides.
"""
import os
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigurationError
from ..UTILS.ip_validation import validate_ipv4

ENV_PREFIX = "STORJUP_"
DEFAULT_ENV_FILE = "storjup-nas.env"

DEFAULT_SERVICES = ["minimal", "satellite-core", "satellite-admin", "edge", "db", "billing"]
DEFAULT_PERSISTED_SERVICES = ["db", "storagenode", "auth"]

_LIST_FIELDS = ("services", "persisted_services", "compose_command")


class InstallMode(str, Enum):
    """
    How the installer treats the target directory.
    """
    FRESH = "fresh"
    HTTPS_ONLY = "https"
    REINSTALL = "reinstall"


class InstallerSettings(BaseModel):
    """
    Everything an installer run needs, passed explicitly to each component.
    """
    install_dir: str
    ip_address: Optional[str] = None

    binary_name: str = "storj-up"
    compose_file_name: str = "docker-compose.yaml"
    env_file_name: str = ".env"
    cert_dir_name: str = "certificates"

    services: List[str] = Field(default_factory=lambda: list(DEFAULT_SERVICES))
    persisted_services: List[str] = Field(default_factory=lambda: list(DEFAULT_PERSISTED_SERVICES))
    compose_command: List[str] = Field(default_factory=lambda: ["docker", "compose"])

    storage_node_count: int = Field(default=10, ge=0)
    settle_timeout: float = Field(default=15.0, ge=0)
    recheck_timeout: float = Field(default=10.0, ge=0)
    poll_interval: float = Field(default=3.0, gt=0)

    @field_validator("install_dir")
    @classmethod
    def _absolute_install_dir(cls, value: str) -> str:
        return os.path.abspath(value)

    @field_validator("ip_address")
    @classmethod
    def _valid_ip_address(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return validate_ipv4(value)

    @property
    def binary_path(self) -> str:
        return os.path.join(self.install_dir, self.binary_name)

    @property
    def compose_file(self) -> str:
        return os.path.join(self.install_dir, self.compose_file_name)

    @property
    def env_file(self) -> str:
        return os.path.join(self.install_dir, self.env_file_name)

    @property
    def cert_dir(self) -> str:
        return os.path.join(self.install_dir, self.cert_dir_name)

    @property
    def https_backup_file(self) -> str:
        return f"{self.compose_file}.before-https-config"

    def with_ip(self, ip_address: str) -> "InstallerSettings":
        """
        Returns a copy bound to a validated IP address.
        """
        return self.model_copy(update={"ip_address": validate_ipv4(ip_address)})

    @classmethod
    def load(cls,
             install_dir: str,
             env_file: Optional[str] = None,
             environ: Optional[Mapping[str, str]] = None,
             **overrides: Any) -> "InstallerSettings":
        """
        Builds settings from layered sources.

        Later sources win: the env file (``storjup-nas.env`` in the install
        directory unless given), then ``STORJUP_*`` process variables, then
        keyword overrides whose value is not None.

        :param install_dir: Installation directory.
        :param env_file: Optional path to a dotenv file.
        :param environ: Process environment, defaults to ``os.environ``.
        :return: Validated settings.
        """
        values: Dict[str, Any] = {}

        env_path = env_file or os.path.join(install_dir, DEFAULT_ENV_FILE)
        if os.path.exists(env_path):
            values.update(_prefixed(dotenv_values(env_path)))
        elif env_file:
            raise ConfigurationError(f"Settings file not found: {env_file}")

        values.update(_prefixed(os.environ if environ is None else environ))
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["install_dir"] = install_dir

        for key in _LIST_FIELDS:
            if isinstance(values.get(key), str):
                values[key] = [item.strip() for item in values[key].split(",") if item.strip()]
        # "docker compose" arrives as one spaced word
        if values.get("compose_command"):
            values["compose_command"] = [part for item in values["compose_command"] for part in item.split()]

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid installer settings: {e}") from e


def _prefixed(source: Mapping[str, Optional[str]]) -> Dict[str, str]:
    fields = InstallerSettings.model_fields
    values = {}
    for key, value in source.items():
        if not key.startswith(ENV_PREFIX) or value is None:
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in fields:
            values[name] = value
    return values
