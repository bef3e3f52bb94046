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
Rewriting of individual services inside a docker-compose document.

The whole document is validated with PyYAML, but only the lines belonging to
the target service are regenerated. Every other line is copied through
byte for byte, so comments and formatting elsewhere in the file survive.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from ..exceptions import MalformedDocumentError

GATEWAY_SERVICE = "gateway-mt"
GATEWAY_IMAGE = "img.dev.storj.io/storjup/edge:1.97.0"
TLS_PORT = 9999
HTTP_PORT = 20010
SERVER_ADDRESS_KEY = "STORJ_SERVER_ADDRESS"
SERVER_ADDRESS = f"0.0.0.0:{HTTP_PORT}"
CERT_MOUNT_TARGET = "/certs"

GATEWAY_COMMAND = [
    "gateway-mt",
    "run",
    "--defaults=dev",
    f"--cert-dir={CERT_MOUNT_TARGET}",
    f"--server.address={SERVER_ADDRESS}",
    f"--server.address-tls=0.0.0.0:{TLS_PORT}",
    "--insecure-disable-tls=false",
]

_SERVICES_RE = re.compile(r"^services:\s*(#.*)?$")
_FIELD_RE = re.compile(r"^(?P<key>[^\s#\-][^:]*):(\s|$)")


class QuotedString(str):
    """
    A string that is always emitted in double quotes.
    """


class _SectionDumper(yaml.SafeDumper):
    pass


def _represent_quoted(dumper: yaml.SafeDumper, data: QuotedString) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", str(data), style='"')


_SectionDumper.add_representer(QuotedString, _represent_quoted)


class _StringLoader(yaml.SafeLoader):
    """
    Loads every plain scalar as a string, except an empty value or ``null``.

    docker compose reads YAML 1.2, where ``yes``, ``010`` or ``12:30`` are
    plain strings. SafeLoader would turn them into booleans and integers.
    """
    yaml_implicit_resolvers = {}


_StringLoader.add_implicit_resolver(
    "tag:yaml.org,2002:null",
    re.compile(r"^(?:~|null|Null|NULL|)$"),
    ["~", "n", "N", ""],
)


@dataclass
class ServiceSection:
    """
    Line span of one service inside a compose document, split into fields.

    ``fields`` holds ``(key, lines)`` pairs in document order. Comment lines
    that precede the first field are kept under the key ``None``. A service
    whose value sits on the header line (``gateway-mt: {}``) is ``inline``
    and has no fields.
    """
    header: str
    start: int
    end: int
    field_indent: int
    fields: List[Tuple[Optional[str], List[str]]] = field(default_factory=list)
    inline: bool = False

    def has_field(self, key: str) -> bool:
        return any(name == key for name, _ in self.fields)

    def field_lines(self, key: str) -> List[str]:
        """
        Returns the raw lines of every field named ``key``, in document order.
        """
        lines: List[str] = []
        for name, block in self.fields:
            if name == key:
                lines.extend(block)
        return lines


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _is_filler(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _terminated(lines: List[str]) -> List[str]:
    if lines and not lines[-1].endswith("\n"):
        return lines[:-1] + [lines[-1] + "\n"]
    return lines


def _is_header(text: str, name: str) -> bool:
    return re.match(re.escape(name) + r":\s*(#.*)?$", text) is not None


def _is_key(text: str, name: str) -> bool:
    return re.match(re.escape(name) + r":(\s|$)", text) is not None


def load_services(document: str) -> Dict[str, Any]:
    """
    Parses a compose document and returns its ``services`` mapping.

    :param document: Compose document text.
    :return: Mapping of service name to its parsed definition.
    :raises MalformedDocumentError: If the text is not YAML or has no services.
    """
    try:
        data = yaml.safe_load(document)
    except (yaml.YAMLError, ValueError) as e:
        raise MalformedDocumentError(f"Compose document is not valid YAML: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
        raise MalformedDocumentError("Compose document has no 'services' mapping")
    return data["services"]


def find_section(lines: List[str], name: str) -> Optional[ServiceSection]:
    """
    Locates a service block under the top-level ``services:`` key.

    The service indentation is taken from the first entry of the mapping and
    the field indentation from the first line of the service body, so the
    document does not have to use two-space indentation.

    :param lines: Document lines, with line endings.
    :param name: Service name.
    :return: The located section, or None if the service has no block.
    """
    services_at = next((i for i, line in enumerate(lines) if _SERVICES_RE.match(line)), None)
    if services_at is None:
        return None

    service_indent = 0
    start = None
    end = len(lines)
    for i in range(services_at + 1, len(lines)):
        line = lines[i]
        if _is_filler(line):
            continue
        indent = _indent(line)
        if start is not None:
            if indent <= service_indent:
                end = i
                break
            continue
        if indent == 0:
            return None
        if not service_indent:
            service_indent = indent
        if indent == service_indent and _is_key(line[indent:], name):
            start = i

    if start is None:
        return None

    # Blank lines between services stay outside the section.
    while end > start + 1 and not lines[end - 1].strip():
        end -= 1

    header = lines[start]
    inline = not _is_header(header[service_indent:], name)
    body = lines[start + 1:end]
    structural = [line for line in body if not _is_filler(line)]
    if structural and not inline:
        field_indent = _indent(structural[0])
    else:
        field_indent = 2 * service_indent

    section = ServiceSection(header=header, start=start, end=end, field_indent=field_indent, inline=inline)
    if inline:
        return section
    for line in body:
        if not _is_filler(line) and _indent(line) == field_indent:
            match = _FIELD_RE.match(line[field_indent:])
            if match:
                section.fields.append((match.group("key").strip(), [line]))
                continue
        if section.fields:
            section.fields[-1][1].append(line)
        else:
            section.fields.append((None, [line]))
    return section


def _normalize_environment(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    if isinstance(value, list):
        environment: Dict[str, Any] = {}
        for entry in value:
            entry = str(entry)
            if "=" in entry:
                k, v = entry.split("=", 1)
                environment[k] = v
            else:
                environment[entry] = None
        return environment
    raise MalformedDocumentError(f"Unsupported environment block: {value!r}")


def parse_environment(section: ServiceSection) -> Dict[str, Any]:
    """
    Collects the environment variables of a service.

    Both the mapping form and the ``KEY=VALUE`` list form are accepted. When a
    key repeats, the last occurrence wins. Values come back as the strings
    docker compose would pass to the container; a key without a value maps
    to None.
    """
    environment: Dict[str, Any] = {}
    for name, block in section.fields:
        if name != "environment":
            continue
        text = "".join(line[min(section.field_indent, _indent(line)):] for line in block)
        try:
            parsed = yaml.load(text, Loader=_StringLoader)
        except (yaml.YAMLError, ValueError) as e:
            raise MalformedDocumentError(f"Invalid environment block: {e}") from e
        environment.update(_normalize_environment(parsed.get("environment")))
    return environment


def _dump_fields(fields: Dict[str, Any], indent: int) -> List[str]:
    text = yaml.dump(
        fields,
        Dumper=_SectionDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )
    pad = " " * indent
    return [pad + line + "\n" for line in text.splitlines()]


def patch(document: str, section_name: str, bind_address: str, cert_path: str) -> str:
    """
    Rebuilds a gateway service so that it terminates TLS on the bind address.

    The ``deploy`` and ``networks`` blocks are kept verbatim and the
    environment is carried over. ``command``, ``ports``, ``volumes``, ``image``
    and any other field are dropped and regenerated in a fixed order.

    :param document: Compose document text.
    :param section_name: Name of the service to rebuild.
    :param bind_address: Host address the TLS and HTTP ports are published on.
    :param cert_path: Host directory mounted into the container as ``/certs``.
    :return: The rewritten document.
    :raises MalformedDocumentError: If the service is not in the document.
    """
    services = load_services(document)
    if section_name not in services:
        raise MalformedDocumentError(f"Service '{section_name}' not found in compose document")

    lines = document.splitlines(keepends=True)
    section = find_section(lines, section_name)
    if section is None:
        raise MalformedDocumentError(f"Service '{section_name}' not found under 'services'")

    if section.inline:
        # The value shares the header line, so the service is rewritten as a
        # block and the kept fields are taken from the parsed document.
        header = section.header[:_indent(section.header)] + section_name + ":\n"
        definition = yaml.load(document, Loader=_StringLoader)["services"][section_name]
        original = services[section_name]
        if not isinstance(definition, dict) or not isinstance(original, dict):
            definition, original = {}, {}
        captured = _normalize_environment(definition.get("environment"))
        kept_before, kept_after = [], []
        if "deploy" in original:
            kept_before = _dump_fields({"deploy": original["deploy"]}, section.field_indent)
        if "networks" in original:
            kept_after = _dump_fields({"networks": original["networks"]}, section.field_indent)
    else:
        header = section.header
        captured = parse_environment(section)
        kept_before = section.field_lines("deploy")
        kept_after = section.field_lines("networks")

    environment = {SERVER_ADDRESS_KEY: SERVER_ADDRESS}
    for key in sorted(captured):
        if key != SERVER_ADDRESS_KEY:
            environment[key] = captured[key]

    generated = _dump_fields({
        "environment": environment,
        "image": GATEWAY_IMAGE,
        "command": list(GATEWAY_COMMAND),
        "ports": [
            QuotedString(f"{bind_address}:{TLS_PORT}:{TLS_PORT}"),
            QuotedString(f"{bind_address}:{HTTP_PORT}:{HTTP_PORT}"),
        ],
        "volumes": [{
            "type": "bind",
            "source": cert_path,
            "target": CERT_MOUNT_TARGET,
            "bind": {"create_host_path": True},
        }],
    }, section.field_indent)

    result = lines[:section.start]
    result.extend(_terminated([header]))
    result.extend(_terminated(kept_before))
    result.extend(generated)
    result.extend(_terminated(kept_after))
    result.extend(lines[section.end:])
    return "".join(result)


def bind_ports(document: str, section_name: str, bind_address: str, ports: Sequence[int]) -> str:
    """
    Replaces the ``ports`` list of a service with bindings on one address.

    Services that are absent, or that publish no ports, are left alone.

    :param document: Compose document text.
    :param section_name: Name of the service.
    :param bind_address: Host address to publish on.
    :param ports: Ports published with the same host and container number.
    :return: The rewritten document.
    """
    lines = document.splitlines(keepends=True)
    section = find_section(lines, section_name)
    if section is None or not section.has_field("ports"):
        return document

    bindings = _dump_fields(
        {"ports": [QuotedString(f"{bind_address}:{port}:{port}") for port in ports]},
        section.field_indent,
    )

    result = lines[:section.start]
    result.extend(_terminated([section.header]))
    replaced = False
    for name, block in section.fields:
        if name != "ports":
            result.extend(block)
        elif not replaced:
            result.extend(bindings)
            replaced = True
    result.extend(lines[section.end:])
    return "".join(result)
