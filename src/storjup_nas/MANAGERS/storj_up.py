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
Wrapper around the storj-up binary that scaffolds the compose stack.
"""
import os
import shutil
import stat
from typing import List, Optional, Tuple

from ..MODELS.installer_settings import InstallerSettings
from ..RUNNERS.command_runner import CommandRunner
from ..exceptions import BinaryNotFoundError

DOWNLOAD_URL = "https://github.com/storj/up"

WEB_UI_PORT = 10000
GATEWAY_TLS_PORT = 9999
GATEWAY_HTTP_PORT = 20010
LINKSHARING_PORT = 9090
AUTHSERVICE_PORT = 8888


def endpoint_environment(ip_address: str) -> List[Tuple[str, str, str]]:
    """
    Variables that point satellite, authservice and linksharing at the
    published addresses. Bucket creation and the S3 gateway need them.

    :return: ``(service, variable, value)`` triples.
    """
    return [
        ("satellite-api", "STORJ_CONSOLE_GATEWAY_CREDENTIALS_REQUEST_URL", f"http://{ip_address}:{AUTHSERVICE_PORT}"),
        ("satellite-api", "STORJ_CONSOLE_LINKSHARING_URL", f"http://{ip_address}:{LINKSHARING_PORT}"),
        ("authservice", "STORJ_ENDPOINT", f"http://{ip_address}:{GATEWAY_TLS_PORT}"),
        ("linksharing", "STORJ_PUBLIC_URL", f"http://{ip_address}:{LINKSHARING_PORT}"),
    ]


def _make_executable(path: str):
    mode = os.stat(path).st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class StorjUp:
    """
    Runs storj-up sub-commands inside the installation directory.
    """
    def __init__(self, settings: InstallerSettings, runner: Optional[CommandRunner] = None):
        """
        :param settings: Installer settings.
        :param runner: Command runner, defaults to one bound to the install directory.
        """
        self.settings = settings
        self.runner = runner or CommandRunner("storj-up", working_dir=settings.install_dir)

    @staticmethod
    def install_binary(settings: InstallerSettings, source: Optional[str] = None) -> str:
        """
        Makes sure the storj-up binary sits in the install directory and is executable.

        :param settings: Installer settings.
        :param source: Binary to copy in when none is installed yet.
        :return: Path of the installed binary.
        :raises BinaryNotFoundError: If neither the installed binary nor ``source`` exists.
        """
        target = settings.binary_path
        if not os.path.isfile(target):
            if not source:
                raise BinaryNotFoundError(
                    f"storj-up binary not found in {settings.install_dir}. Download it from {DOWNLOAD_URL}"
                )
            if not os.path.isfile(source):
                raise BinaryNotFoundError(f"File not found: {source}")
            os.makedirs(settings.install_dir, exist_ok=True)
            shutil.copy2(source, target)
            print(f"Binary copied to {target}")

        _make_executable(target)
        return target

    def _run(self, *args: str):
        return self.runner.run([self.settings.binary_path, *args])

    def init(self, services: Optional[List[str]] = None):
        """Generates docker-compose.yaml for the given services."""
        self._run("init", ",".join(services or self.settings.services))

    def persist(self, services: Optional[List[str]] = None):
        """Switches the given services to persistent storage."""
        self._run("persist", ",".join(services or self.settings.persisted_services))

    def setenv(self, service: str, key: str, value: str):
        """Sets one environment variable of a service in the compose file."""
        self._run("env", "setenv", service, f"{key}={value}")

    def configure_endpoints(self, ip_address: str) -> List[Tuple[str, str, str]]:
        """
        Applies :func:`endpoint_environment` for the given address.

        :return: The variables that were set.
        """
        variables = endpoint_environment(ip_address)
        for service, key, value in variables:
            self.setenv(service, key, value)
        return variables
