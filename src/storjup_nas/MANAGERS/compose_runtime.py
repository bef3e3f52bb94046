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
Control of the generated stack through the docker compose CLI.
"""
from typing import List, Optional

from ..MODELS.container_status import ContainerStatus
from ..MODELS.installer_settings import InstallerSettings
from ..PARSERS.compose_ps_parser import parse_ps_output
from ..RUNNERS.command_runner import CommandRunner


class ComposeRuntime:
    """
    Brings the compose project up and down and reports on its containers.
    """
    def __init__(self, settings: InstallerSettings, runner: Optional[CommandRunner] = None):
        """
        :param settings: Installer settings.
        :param runner: Command runner, defaults to one bound to the install directory.
        """
        self.settings = settings
        self.runner = runner or CommandRunner("compose", working_dir=settings.install_dir)

    def _command(self, *args: str) -> List[str]:
        return [*self.settings.compose_command, "-f", self.settings.compose_file, *args]

    def up(self, detach: bool = True):
        """Starts all services."""
        args = ["up", "-d"] if detach else ["up"]
        self.runner.run(self._command(*args))

    def down(self):
        """Stops and removes all services."""
        self.runner.run(self._command("down"))

    def restart(self):
        """Recreates the stack so compose file changes take effect."""
        self.down()
        self.up()

    def ps(self) -> List[ContainerStatus]:
        """
        Lists all containers of the project, stopped ones included.
        """
        result = self.runner.run(self._command("ps", "--all", "--format", "json"), capture=True)
        return parse_ps_output(result.stdout)

    def logs(self, services: Optional[List[str]] = None) -> str:
        """
        Returns combined stdout and stderr of the service logs.
        """
        result = self.runner.run(self._command("logs", "--no-color", *(services or [])), check=False, capture=True)
        return result.stdout + result.stderr
