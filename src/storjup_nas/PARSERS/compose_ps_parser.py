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
Parser for the JSON emitted by ``docker compose ps --format json``.
"""
import json
from typing import List

from pydantic import ValidationError

from ..MODELS.container_status import ContainerStatus
from ..exceptions import UnexpectedOutputError


def parse_ps_output(output: str) -> List[ContainerStatus]:
    """
    Parses container statuses.

    Compose v2.21 and later print one JSON object per line; older releases
    print a single JSON array. Both forms are accepted.

    :param output: Raw stdout of the ps command.
    :return: One status per container.
    """
    output = output.strip()
    if not output:
        return []

    try:
        if output.startswith("["):
            records = json.loads(output)
        else:
            records = [json.loads(line) for line in output.splitlines() if line.strip()]
        return [ContainerStatus.model_validate(record) for record in records]
    except (json.JSONDecodeError, ValidationError) as e:
        raise UnexpectedOutputError(f"Could not parse docker compose ps output: {e}") from e
