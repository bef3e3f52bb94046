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
The installer steps, in the order an interactive run performs them.
"""
import os
from typing import List, Optional

from ..MODELS.installer_settings import InstallerSettings, InstallMode
from ..PARSERS.compose_patcher import GATEWAY_SERVICE, bind_ports, patch
from ..UTILS.file_ops import atomic_write_text, backup_copy, move_into, timestamped_dir
from ..exceptions import ConfigurationError, MalformedDocumentError
from .certificate_manager import CertificateManager, CertificateReport
from .compose_runtime import ComposeRuntime
from .startup_monitor import StartupMonitor, StartupReport
from .storage_node_provisioner import StorageNodeProvisioner
from .storj_up import AUTHSERVICE_PORT, LINKSHARING_PORT, StorjUp

PORT_BINDINGS = (
    ("linksharing", LINKSHARING_PORT),
    ("authservice", AUTHSERVICE_PORT),
)


class Installer:
    """
    Sets up a storj-up stack in one installation directory.
    """
    def __init__(self,
                 settings: InstallerSettings,
                 storj_up: Optional[StorjUp] = None,
                 runtime: Optional[ComposeRuntime] = None):
        """
        Initializes the installer.

        :param settings: Settings for this run.
        :param storj_up: storj-up wrapper, built from the settings if omitted.
        :param runtime: Compose runtime, built from the settings if omitted.
        """
        self.settings = settings
        self.storj_up = storj_up or StorjUp(settings)
        self.runtime = runtime or ComposeRuntime(settings)
        self.certificates = CertificateManager(settings.cert_dir)
        self.provisioner = StorageNodeProvisioner(settings.install_dir, count=settings.storage_node_count)
        self.monitor = StartupMonitor(
            self.runtime,
            self.provisioner,
            settle_timeout=settings.settle_timeout,
            recheck_timeout=settings.recheck_timeout,
            poll_interval=settings.poll_interval,
        )

    def bind_ip(self, ip_address: str):
        """
        Validates and records the IP address services are published on.
        """
        self.settings = self.settings.with_ip(ip_address)

    def has_existing_install(self) -> bool:
        return os.path.isfile(self.settings.compose_file)

    def _require_ip(self) -> str:
        if not self.settings.ip_address:
            raise ConfigurationError("No IP address configured")
        return self.settings.ip_address

    def backup_existing(self) -> str:
        """
        Moves the compose file and .env of an existing install into a
        timestamped backup directory.

        :return: The backup directory.
        """
        backup_dir = timestamped_dir(self.settings.install_dir)
        print(f"Backing up existing configuration to: {backup_dir}")
        move_into(backup_dir, [self.settings.compose_file, self.settings.env_file])
        return backup_dir

    def initialize(self) -> List[str]:
        """
        Generates the compose file, enables persistence and points the
        services at the bind address.

        :return: ``service:VAR`` names of the variables that were set.
        """
        ip_address = self._require_ip()
        print("=== Initializing Storj-Up ===")
        self.storj_up.init()
        print("=== Setting Up Persistent Storage ===")
        self.storj_up.persist()
        print("=== Configuring Environment Variables ===")
        variables = self.storj_up.configure_endpoints(ip_address)
        return [f"{service}:{key}" for service, key, _ in variables]

    def check_certificates(self) -> CertificateReport:
        """
        Creates the certificate directory if needed and lists what it holds.
        """
        if self.certificates.ensure_dir():
            print(f"Created certificate directory: {self.certificates.cert_dir}")
        return self.certificates.inspect()

    def configure_https(self) -> str:
        """
        Rewrites gateway-mt for TLS and binds the linksharing and authservice
        ports to the IP address.

        The compose file is copied to ``<file>.before-https-config`` first and
        is only replaced once every rewrite succeeded.

        :return: Path of the backup copy.
        :raises MalformedDocumentError: If gateway-mt is missing from the file.
        """
        ip_address = self._require_ip()
        compose_file = self.settings.compose_file
        if not os.path.isfile(compose_file):
            raise MalformedDocumentError(f"Compose file not found: {compose_file}")

        backup = backup_copy(compose_file, self.settings.https_backup_file)
        print(f"Backed up {os.path.basename(compose_file)} to {backup}")

        with open(compose_file, "r", encoding="utf-8") as f:
            document = f.read()

        try:
            document = patch(document, GATEWAY_SERVICE, ip_address, self.settings.cert_dir)
        except MalformedDocumentError as e:
            raise MalformedDocumentError(f"{e}. Please check the backup at: {backup}") from e
        print("Gateway-MT HTTPS configuration complete.")

        for service, port in PORT_BINDINGS:
            patched = bind_ports(document, service, ip_address, [port])
            if patched != document:
                print(f"  Configured {service} port: {ip_address}:{port}")
            document = patched

        atomic_write_text(compose_file, document)
        return backup

    def start_services(self, restart: bool = False) -> StartupReport:
        """
        Prepares the storage node directories, starts the stack and watches
        the storage nodes.

        :param restart: Take the running stack down first.
        :return: Report of the storage node startup.
        """
        print("Preparing storage node directories...")
        self.provisioner.provision()

        if restart:
            print("Restarting services with docker compose...")
            self.runtime.restart()
        else:
            print("Starting services with docker compose...")
            self.runtime.up()

        return self.monitor.check()

    def mode_for(self, requested: Optional[InstallMode]) -> InstallMode:
        """
        Resolves the install mode: fresh when nothing is installed yet,
        otherwise the requested mode (HTTPS only by default).
        """
        if not self.has_existing_install():
            return InstallMode.FRESH
        if requested is None or requested == InstallMode.FRESH:
            return InstallMode.HTTPS_ONLY
        return requested
