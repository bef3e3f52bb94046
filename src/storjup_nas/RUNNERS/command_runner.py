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
Execution of external commands (storj-up, docker compose) to completion.
"""
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..exceptions import BinaryNotFoundError, CommandFailedError


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs blocking commands in a fixed working directory.
    """
    def __init__(self, name: str, working_dir: Optional[str] = None, env: Optional[Dict[str, str]] = None):
        """
        Initializes the command runner.

        Args:
            name (str): Prefix for console messages.
            working_dir (Optional[str]): Directory commands run in.
            env (Optional[Dict[str, str]]): Environment for the commands, inherited if None.
        """
        self.name = name
        self.working_dir = working_dir
        self.env = env

    def run(self, command: List[str], check: bool = True, capture: bool = False) -> CommandResult:
        """
        Runs a command and waits for it.

        Args:
            command (List[str]): Command and arguments to execute.
            check (bool): Raise CommandFailedError on a non-zero exit.
            capture (bool): Capture stdout/stderr instead of passing them to the terminal.

        Returns:
            CommandResult: Exit status and captured output.
        """
        print(f"[{self.name}] Running: {' '.join(command)}")

        try:
            completed = subprocess.run(
                command,
                cwd=self.working_dir,
                env=self.env,
                capture_output=capture,
                text=True,
                # Avoid shell=True for security reasons (CWE-78)
                shell=False,
            )
        except FileNotFoundError as e:
            raise BinaryNotFoundError(f"Executable not found: {command[0]}") from e

        result = CommandResult(
            command=list(command),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise CommandFailedError(result.command, result.returncode, result.stderr)
        return result
