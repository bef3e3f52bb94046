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
Models for container state as reported by ``docker compose ps``.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

STORAGE_NODE_PREFIX = "storagenode"


class ContainerStatus(BaseModel):
    """
    One container of the compose project.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(alias="Name")
    service: str = Field(default="", alias="Service")
    state: str = Field(default="", alias="State")
    status: str = Field(default="", alias="Status")
    exit_code: Optional[int] = Field(default=None, alias="ExitCode")

    @property
    def is_storage_node(self) -> bool:
        return STORAGE_NODE_PREFIX in self.service or STORAGE_NODE_PREFIX in self.name

    @property
    def running(self) -> bool:
        return self.state.lower() == "running"

    @property
    def exited(self) -> bool:
        return self.state.lower() == "exited" or self.status.lower().startswith("exited")
