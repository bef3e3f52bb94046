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
Unit tests for the compose document patcher.
"""
import pytest
import yaml

from storjup_nas.PARSERS.compose_patcher import bind_ports, find_section, patch
from storjup_nas.exceptions import MalformedDocumentError

HEAD = """\
version: "3.4"
services:
  authservice:
    command:
    - auth
    - run
    environment:
      STORJ_ENDPOINT: http://localhost:9999
    image: img.dev.storj.io/storjup/edge:1.97.0
    ports:
    - mode: ingress
      target: 8888
      published: "8888"
      protocol: tcp
"""

GATEWAY = """\
  gateway-mt:
    command:
    - gateway-mt
    - run
    - --defaults=dev
    deploy:
      replicas: 1
    environment:
      STORJ_AUTH_BASE_URL: http://authservice:8888
      STORJ_SERVER_ADDRESS: 0.0.0.0:9999
      STORJ_AUTH_TOKEN: super-secret
    image: img.dev.storj.io/storjup/edge:1.96.0
    networks:
      default: null
    ports:
    - mode: ingress
      target: 9999
      published: "9999"
      protocol: tcp
"""

TAIL = """\
  linksharing:
    command:
    - linksharing
    - run
    image: img.dev.storj.io/storjup/edge:1.97.0
    ports:
    - mode: ingress
      target: 9090
      published: "9090"
      protocol: tcp
  storagenode:
    image: img.dev.storj.io/storjup/storj:1.97.0
networks:
  default: null
"""

DOCUMENT = HEAD + GATEWAY + TAIL

PATCHED_GATEWAY = """\
  gateway-mt:
    deploy:
      replicas: 1
    environment:
      STORJ_SERVER_ADDRESS: 0.0.0.0:20010
      STORJ_AUTH_BASE_URL: http://authservice:8888
      STORJ_AUTH_TOKEN: super-secret
    image: img.dev.storj.io/storjup/edge:1.97.0
    command:
    - gateway-mt
    - run
    - --defaults=dev
    - --cert-dir=/certs
    - --server.address=0.0.0.0:20010
    - --server.address-tls=0.0.0.0:9999
    - --insecure-disable-tls=false
    ports:
    - "10.0.0.5:9999:9999"
    - "10.0.0.5:20010:20010"
    volumes:
    - type: bind
      source: /certs
      target: /certs
      bind:
        create_host_path: true
    networks:
      default: null
"""


def test_patch_rewrites_gateway_section():
    result = patch(DOCUMENT, "gateway-mt", "10.0.0.5", "/certs")
    assert result == HEAD + PATCHED_GATEWAY + TAIL


def test_patch_keeps_surrounding_lines_byte_identical():
    result = patch(DOCUMENT, "gateway-mt", "192.168.1.100", "/mnt/tank/storj/certificates")
    assert result.startswith(HEAD)
    assert result.endswith(TAIL)


def test_patch_duplicate_environment_keys_last_wins():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    environment:\n"
        "      FOO: bar\n"
        "      FOO: baz\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert "    environment:\n      STORJ_SERVER_ADDRESS: 0.0.0.0:20010\n      FOO: baz\n    image:" in result
    assert "FOO: bar" not in result
    assert '    - "10.0.0.5:9999:9999"\n' in result
    assert '    - "10.0.0.5:20010:20010"\n' in result


def test_patch_is_fixed_point():
    once = patch(DOCUMENT, "gateway-mt", "10.0.0.5", "/certs")
    twice = patch(once, "gateway-mt", "10.0.0.5", "/certs")
    assert twice == once


def test_patch_missing_section():
    document = HEAD + TAIL
    with pytest.raises(MalformedDocumentError):
        patch(document, "gateway-mt", "10.0.0.5", "/certs")


def test_patch_invalid_yaml():
    with pytest.raises(MalformedDocumentError):
        patch("services:\n  gateway-mt: [unclosed\n", "gateway-mt", "10.0.0.5", "/certs")


def test_patch_without_services():
    with pytest.raises(MalformedDocumentError):
        patch("version: '3'\n", "gateway-mt", "10.0.0.5", "/certs")


def test_patch_only_foreign_fields():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    restart: always\n"
        "    labels:\n"
        "      owner: nas\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    service = yaml.safe_load(result)["services"]["gateway-mt"]
    assert list(service) == ["environment", "image", "command", "ports", "volumes"]
    assert service["environment"] == {"STORJ_SERVER_ADDRESS": "0.0.0.0:20010"}
    assert "restart" not in result


def test_patch_list_form_environment():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    environment:\n"
        "    - STORJ_AUTH_TOKEN=secret\n"
        "    - STORJ_SERVER_ADDRESS=0.0.0.0:7777\n"
        "    - A_FLAG\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    environment = yaml.safe_load(result)["services"]["gateway-mt"]["environment"]
    assert list(environment) == ["STORJ_SERVER_ADDRESS", "A_FLAG", "STORJ_AUTH_TOKEN"]
    assert environment["STORJ_SERVER_ADDRESS"] == "0.0.0.0:20010"
    assert environment["STORJ_AUTH_TOKEN"] == "secret"
    assert environment["A_FLAG"] is None


def test_patch_follows_document_indentation():
    document = (
        "services:\n"
        "    gateway-mt:\n"
        "        image: old\n"
        "        networks:\n"
        "            default: null\n"
        "    linksharing:\n"
        "        image: other\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert "        image: img.dev.storj.io/storjup/edge:1.97.0\n" in result
    assert "        networks:\n            default: null\n    linksharing:\n" in result
    parsed = yaml.safe_load(result)["services"]
    assert parsed["linksharing"] == {"image": "other"}
    assert parsed["gateway-mt"]["ports"] == ["10.0.0.5:9999:9999", "10.0.0.5:20010:20010"]


def test_patch_cert_path_with_spaces():
    result = patch(DOCUMENT, "gateway-mt", "10.0.0.5", "/mnt/tank/storj up/certificates")
    volume = yaml.safe_load(result)["services"]["gateway-mt"]["volumes"][0]
    assert volume == {
        "type": "bind",
        "source": "/mnt/tank/storj up/certificates",
        "target": "/certs",
        "bind": {"create_host_path": True},
    }


def test_patch_keeps_blank_line_after_section():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    image: old\n"
        "\n"
        "  linksharing:\n"
        "    image: other\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert result.endswith("\n\n  linksharing:\n    image: other\n")


def test_patch_section_at_end_without_newline():
    document = "services:\n  gateway-mt:\n    image: old"
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert result.endswith("        create_host_path: true\n")


def test_find_section_splits_fields():
    lines = DOCUMENT.splitlines(keepends=True)
    section = find_section(lines, "gateway-mt")
    assert section is not None
    assert section.field_indent == 4
    assert [name for name, _ in section.fields] == [
        "command", "deploy", "environment", "image", "networks", "ports",
    ]
    assert section.field_lines("deploy") == ["    deploy:\n", "      replicas: 1\n"]


def test_find_section_ignores_nested_keys():
    lines = DOCUMENT.splitlines(keepends=True)
    assert find_section(lines, "default") is None


def test_bind_ports_replaces_port_list():
    result = bind_ports(DOCUMENT, "linksharing", "10.0.0.5", [9090])
    linksharing = yaml.safe_load(result)["services"]["linksharing"]
    assert linksharing["ports"] == ["10.0.0.5:9090:9090"]
    assert '    - "10.0.0.5:9090:9090"\n  storagenode:\n' in result
    assert result.startswith(HEAD + GATEWAY)


def test_bind_ports_leaves_services_without_ports():
    assert bind_ports(DOCUMENT, "storagenode", "10.0.0.5", [7777]) == DOCUMENT


def test_bind_ports_missing_service():
    assert bind_ports(DOCUMENT, "satellite-api", "10.0.0.5", [7777]) == DOCUMENT


def test_patch_keeps_environment_values_as_strings():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    environment:\n"
        "      A_FLAG: yes\n"
        "      B_TIME: 12:30\n"
        "      C_OCT: 010\n"
        "      D_NUM: 1_000\n"
        "      E_OFF: off\n"
        "      F_QUOTED: \"1\"\n"
        "      G_UNSET:\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    environment = yaml.load(result, Loader=yaml.BaseLoader)["services"]["gateway-mt"]["environment"]
    assert environment["A_FLAG"] == "yes"
    assert environment["B_TIME"] == "12:30"
    assert environment["C_OCT"] == "010"
    assert environment["D_NUM"] == "1_000"
    assert environment["E_OFF"] == "off"
    assert environment["F_QUOTED"] == "1"
    assert yaml.safe_load(result)["services"]["gateway-mt"]["environment"]["G_UNSET"] is None
    assert patch(result, "gateway-mt", "10.0.0.5", "/certs") == result


def test_patch_list_form_environment_keeps_strings():
    document = (
        "services:\n"
        "  gateway-mt:\n"
        "    environment:\n"
        "    - DEBUG=yes\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert yaml.safe_load(result)["services"]["gateway-mt"]["environment"]["DEBUG"] == "yes"


def test_patch_inline_service():
    document = (
        "services:\n"
        "  gateway-mt: {}\n"
        "  linksharing:\n"
        "    image: x\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    assert result.startswith("services:\n  gateway-mt:\n    environment:\n")
    assert result.endswith("        create_host_path: true\n  linksharing:\n    image: x\n")
    service = yaml.safe_load(result)["services"]["gateway-mt"]
    assert service["image"] == "img.dev.storj.io/storjup/edge:1.97.0"
    assert service["ports"] == ["10.0.0.5:9999:9999", "10.0.0.5:20010:20010"]


def test_patch_inline_service_keeps_environment_and_deploy():
    document = (
        "services:\n"
        "  gateway-mt: {environment: {TOKEN: abc, FLAG: on}, deploy: {replicas: 1}, restart: always}\n"
    )
    result = patch(document, "gateway-mt", "10.0.0.5", "/certs")
    service = yaml.safe_load(result)["services"]["gateway-mt"]
    assert list(service) == ["deploy", "environment", "image", "command", "ports", "volumes"]
    assert service["deploy"] == {"replicas": 1}
    assert service["environment"] == {
        "STORJ_SERVER_ADDRESS": "0.0.0.0:20010",
        "FLAG": "on",
        "TOKEN": "abc",
    }
    assert patch(result, "gateway-mt", "10.0.0.5", "/certs") == result


def test_find_section_inline_service():
    lines = ["services:\n", "  gateway-mt: {}\n", "  linksharing:\n", "    image: x\n"]
    section = find_section(lines, "gateway-mt")
    assert section.inline
    assert section.fields == []
    assert (section.start, section.end, section.field_indent) == (1, 2, 4)


def test_bind_ports_leaves_inline_service():
    document = "services:\n  linksharing: {image: x}\n"
    assert bind_ports(document, "linksharing", "10.0.0.5", [9090]) == document
