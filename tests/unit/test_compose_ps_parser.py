import json

import pytest

from storjup_nas.PARSERS.compose_ps_parser import parse_ps_output
from storjup_nas.exceptions import UnexpectedOutputError


def test_parse_json_lines():
    output = "\n".join([
        json.dumps({"Name": "storj-storagenode1-1", "Service": "storagenode1", "State": "running",
                    "Status": "Up 5 seconds", "ExitCode": 0}),
        json.dumps({"Name": "storj-storagenode2-1", "Service": "storagenode2", "State": "exited",
                    "Status": "Exited (1) 2 seconds ago", "ExitCode": 1}),
        json.dumps({"Name": "storj-gateway-mt-1", "Service": "gateway-mt", "State": "running"}),
    ])
    statuses = parse_ps_output(output)
    assert [s.service for s in statuses] == ["storagenode1", "storagenode2", "gateway-mt"]
    assert statuses[0].running and not statuses[0].exited
    assert statuses[1].exited and statuses[1].exit_code == 1
    assert statuses[1].is_storage_node
    assert not statuses[2].is_storage_node


def test_parse_json_array():
    output = json.dumps([
        {"Name": "storj-db-1", "Service": "db", "State": "running", "Publishers": []},
    ])
    statuses = parse_ps_output(output)
    assert len(statuses) == 1
    assert statuses[0].name == "storj-db-1"


def test_parse_empty_output():
    assert parse_ps_output("") == []
    assert parse_ps_output("\n") == []


def test_parse_garbage():
    with pytest.raises(UnexpectedOutputError):
        parse_ps_output("NAME  IMAGE  STATUS")
