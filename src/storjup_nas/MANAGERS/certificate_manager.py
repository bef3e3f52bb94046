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
Checks for the TLS certificate files mounted into gateway-mt.
"""
import glob
import os
from dataclasses import dataclass, field
from typing import List


@dataclass
class CertificateReport:
    """Certificate files found in the certificate directory."""

    cert_dir: str
    certificates: List[str] = field(default_factory=list)
    keys: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        # gateway-mt only picks up files with these extensions
        return bool(self.certificates) and bool(self.keys)


class CertificateManager:
    """
    Manages the host directory holding ``*.crt`` and ``*.key`` files.
    """
    def __init__(self, cert_dir: str):
        self.cert_dir = os.path.abspath(cert_dir)

    def ensure_dir(self) -> bool:
        """
        Creates the certificate directory.

        :return: True if it did not exist before.
        """
        if os.path.isdir(self.cert_dir):
            return False
        os.makedirs(self.cert_dir, exist_ok=True)
        return True

    def inspect(self) -> CertificateReport:
        return CertificateReport(
            cert_dir=self.cert_dir,
            certificates=sorted(glob.glob(os.path.join(self.cert_dir, "*.crt"))),
            keys=sorted(glob.glob(os.path.join(self.cert_dir, "*.key"))),
        )
