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
Errors raised by the installer. Every failure aborts the current run.
"""
from typing import List, Optional


class InstallerError(Exception):
    """
    Base class for all installer failures.
    """


class ConfigurationError(InstallerError):
    """
    Installer settings could not be loaded or are invalid.
    """


class MalformedDocumentError(InstallerError):
    """
    The compose document is not valid YAML or lacks the requested service.
    """


class InvalidAddressError(InstallerError):
    """
    A bind address is not a dotted-quad IPv4 address.
    """
    def __init__(self, address: str):
        super().__init__(f"Invalid IP address format: {address!r}")
        self.address = address


class BinaryNotFoundError(InstallerError):
    """
    An external executable (storj-up, docker) could not be found.
    """


class CommandFailedError(InstallerError):
    """
    An external command exited with a non-zero status.
    """
    def __init__(self, command: List[str], returncode: int, stderr: Optional[str] = None):
        message = f"Command failed with exit code {returncode}: {' '.join(command)}"
        if stderr:
            message += f"\n{stderr.strip()}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class UnexpectedOutputError(InstallerError):
    """
    An external command produced output that could not be parsed.
    """
