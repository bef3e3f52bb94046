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
Plain-text reports shown before and after an installer run.
"""
from jinja2 import Template

from ..MODELS.installer_settings import InstallerSettings, InstallMode
from ..MANAGERS.storj_up import (
    AUTHSERVICE_PORT,
    GATEWAY_HTTP_PORT,
    GATEWAY_TLS_PORT,
    LINKSHARING_PORT,
    WEB_UI_PORT,
)

PLAN_TEMPLATE = """\
==========================================
Configuration Summary:
==========================================
  Installation Directory: {{ install_dir }}
  IP Address: {{ ip }}
  Services: {{ services | join(', ') }}
  Persistent Storage: {{ persisted | join(', ') }}

  Web UI Port: {{ ports.web_ui }}
  S3 Gateway (HTTPS): {{ ports.tls }}
  S3 Gateway (HTTP): {{ ports.http }}
  Linksharing Port: {{ ports.linksharing }}
  Authservice Port: {{ ports.authservice }}
==========================================
"""

SUMMARY_TEMPLATE = """\
==========================================
{% if https_only %}HTTPS Configuration Applied!{% else %}Storj-Up Setup Complete!{% endif %}
==========================================

Installation Directory: {{ install_dir }}
Certificate Directory: {{ cert_dir }}

PRIMARY ACCESS URLS:
  Web UI:        http://{{ ip }}:{{ ports.web_ui }}
  S3 Gateway:    https://{{ ip }}:{{ ports.tls }}

Additional Service Endpoints:
  Gateway-MT HTTP:  http://{{ ip }}:{{ ports.http }}
  Linksharing:      http://{{ ip }}:{{ ports.linksharing }}
  Authservice:      http://{{ ip }}:{{ ports.authservice }}

Certificate Requirements:
  Location: {{ cert_dir }}
  Files needed:
    - *.crt (certificate file)
    - *.key (private key file)
  IMPORTANT: Must use .crt and .key extensions!

Useful Commands:
  cd {{ install_dir }}
  {{ compose }} ps                    # List services
  {{ compose }} logs -f               # Follow all logs
  {{ compose }} logs -f gateway-mt    # Follow specific service
  {{ compose }} restart <service>     # Restart a service
  {{ compose }} down                  # Stop all services
  {{ compose }} up -d                 # Start all services

Storj-Up Commands:
  ./{{ binary }} env list                  # List all environment variables
  ./{{ binary }} env setenv <service> <var>=<value>  # Set environment variable
  ./{{ binary }} persist <services>        # Make storage persistent

Storage Node Notes:
  - {{ node_count }} storage nodes will be created automatically
  - They may take 30-60 seconds to fully initialize
  - Check logs: {{ compose }} logs -f | grep storagenode

If you encounter issues:
  1. Verify certificates are in: {{ cert_dir }}
  2. Check firewall allows ports: {{ ports.web_ui }}, {{ ports.tls }}, {{ ports.http }}, {{ ports.linksharing }}, {{ ports.authservice }}
  3. Verify IP address {{ ip }} is accessible
  4. Check logs: {{ compose }} logs -f

Next Steps:
  1. Access Web UI at: http://{{ ip }}:{{ ports.web_ui }}
  2. Create an account and project
  3. Generate S3 credentials in the Web UI
  4. Configure your S3 client with endpoint: https://{{ ip }}:{{ ports.tls }}

Configuration backup: {{ backup_file }}
"""

PORTS = {
    "web_ui": WEB_UI_PORT,
    "tls": GATEWAY_TLS_PORT,
    "http": GATEWAY_HTTP_PORT,
    "linksharing": LINKSHARING_PORT,
    "authservice": AUTHSERVICE_PORT,
}


def render_plan(settings: InstallerSettings) -> str:
    """
    Renders the configuration summary confirmed before any change is made.
    """
    return Template(PLAN_TEMPLATE).render(
        install_dir=settings.install_dir,
        ip=settings.ip_address,
        services=settings.services,
        persisted=settings.persisted_services,
        ports=PORTS,
    )


def render_summary(settings: InstallerSettings, mode: InstallMode) -> str:
    """
    Renders the closing summary with access URLs and useful commands.
    """
    return Template(SUMMARY_TEMPLATE).render(
        https_only=mode == InstallMode.HTTPS_ONLY,
        install_dir=settings.install_dir,
        cert_dir=settings.cert_dir,
        ip=settings.ip_address,
        ports=PORTS,
        compose=" ".join(settings.compose_command),
        binary=settings.binary_name,
        node_count=settings.storage_node_count,
        backup_file=settings.https_backup_file,
    )
