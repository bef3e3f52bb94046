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
Watches storage nodes after startup and repairs the known permission failure.

Storage node containers exit on first start when their bind-mounted
directories are missing or not writable. The monitor detects this from the
container states and log output, re-provisions the directories and restarts
the stack exactly once.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List

from tenacity import Retrying, retry_if_result, stop_after_attempt, stop_after_delay, wait_fixed

from ..MODELS.container_status import ContainerStatus, STORAGE_NODE_PREFIX
from .compose_runtime import ComposeRuntime
from .storage_node_provisioner import StorageNodeProvisioner

PERMISSION_ERROR_MARKERS = (
    "permission denied",
    "cannot create directory",
    "no such file or directory",
    "mkdir",
    "file exists",
)


class StartupOutcome(str, Enum):
    """Result of watching the storage nodes."""

    HEALTHY = "healthy"
    REMEDIATED = "remediated"
    STILL_FAILING = "still_failing"
    FAILED_WITHOUT_PERMISSION_ERRORS = "failed_without_permission_errors"


@dataclass
class StartupReport:
    """What the monitor saw and did."""

    outcome: StartupOutcome
    failed_nodes: List[str] = field(default_factory=list)
    permission_errors: List[str] = field(default_factory=list)
    remediation_attempted: bool = False


def find_permission_errors(logs: str) -> List[str]:
    """
    Returns storage node log lines that mention a directory or permission problem.
    """
    matches = []
    for line in logs.splitlines():
        lowered = line.lower()
        if STORAGE_NODE_PREFIX in lowered and any(marker in lowered for marker in PERMISSION_ERROR_MARKERS):
            matches.append(line)
    return matches


class StartupMonitor:
    """
    Checks storage node containers after ``up`` and applies one remediation.
    """

    def __init__(
        self,
        runtime: ComposeRuntime,
        provisioner: StorageNodeProvisioner,
        settle_timeout: float = 15.0,
        recheck_timeout: float = 10.0,
        poll_interval: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initializes the startup monitor.

        :param runtime: Compose runtime of the stack.
        :param provisioner: Provisioner used to repair the node directories.
        :param settle_timeout: Seconds to watch the nodes after the first start.
        :param recheck_timeout: Seconds to watch the nodes after the remediation restart.
        :param poll_interval: Seconds between container state checks.
        :param sleep: Sleep function used between checks.
        """
        self.runtime = runtime
        self.provisioner = provisioner
        self.settle_timeout = settle_timeout
        self.recheck_timeout = recheck_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep

    def failed_storage_nodes(self) -> List[ContainerStatus]:
        """
        Returns storage node containers that are currently exited.
        """
        return [c for c in self.runtime.ps() if c.is_storage_node and c.exited]

    def wait_for_failures(self, timeout: float) -> List[ContainerStatus]:
        """
        Watches the storage nodes for up to ``timeout`` seconds.

        Returns as soon as any node has exited. An empty list means every node
        stayed up for the whole window.
        """
        if timeout <= 0:
            return self.failed_storage_nodes()

        attempts = int(timeout // self.poll_interval) + 1
        retryer = Retrying(
            stop=stop_after_delay(timeout) | stop_after_attempt(attempts),
            wait=wait_fixed(self.poll_interval),
            retry=retry_if_result(lambda failed: not failed),
            retry_error_callback=lambda state: state.outcome.result(),
            sleep=self._sleep,
        )
        return retryer(self.failed_storage_nodes)

    def check(self) -> StartupReport:
        """
        Watches the nodes and, on a permission failure, repairs and restarts once.

        :return: Report of the final state.
        """
        print("[monitor] Checking for storage node failures...")
        failed = self.wait_for_failures(self.settle_timeout)
        if not failed:
            print("[monitor] All storage nodes started successfully.")
            return StartupReport(outcome=StartupOutcome.HEALTHY)

        names = [c.name for c in failed]
        print(f"[monitor] Storage nodes exited: {', '.join(names)}. Checking logs for permission errors...")
        errors = find_permission_errors(self.runtime.logs())
        if not errors:
            return StartupReport(
                outcome=StartupOutcome.FAILED_WITHOUT_PERMISSION_ERRORS,
                failed_nodes=names,
            )

        print("[monitor] Detected storage node directory/permission errors, attempting automatic fix...")
        self.runtime.down()
        self.provisioner.provision()
        self.runtime.up()

        still_failed = self.wait_for_failures(self.recheck_timeout)
        if still_failed:
            return StartupReport(
                outcome=StartupOutcome.STILL_FAILING,
                failed_nodes=[c.name for c in still_failed],
                permission_errors=errors,
                remediation_attempted=True,
            )
        return StartupReport(
            outcome=StartupOutcome.REMEDIATED,
            failed_nodes=names,
            permission_errors=errors,
            remediation_attempted=True,
        )
