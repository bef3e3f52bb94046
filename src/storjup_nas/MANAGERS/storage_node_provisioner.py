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
Host directories bind-mounted into the storage node containers.
"""
import os
from typing import List

STORAGE_NODE_SUBDIRS = (
    os.path.join(".local", "share", "storj", "identity", "storagenode"),
    os.path.join("storj", "storage", "blobs"),
    os.path.join("storj", "storage", "trash"),
    os.path.join("storj", "storage", "temp"),
)


class StorageNodeProvisioner:
    """
    Creates the storagenodeN directory trees and opens up their permissions.

    The containers run as a user that does not exist on the NAS, so the trees
    are made world-writable.
    """
    def __init__(self, base_dir: str = ".", count: int = 10, mode: int = 0o777):
        """
        Initializes the provisioner.

        :param base_dir: The installation directory holding the node directories.
        :param count: Number of storage nodes.
        :param mode: Permission bits applied recursively.
        """
        self.base_dir = os.path.abspath(base_dir)
        self.count = count
        self.mode = mode

    def node_dir(self, index: int) -> str:
        """
        Returns the directory of the storage node with the 1-based ``index``.
        """
        return os.path.join(self.base_dir, f"storagenode{index}")

    def node_dirs(self) -> List[str]:
        return [self.node_dir(i) for i in range(1, self.count + 1)]

    def provision(self) -> List[str]:
        """
        Prepares every storage node directory. Safe to call repeatedly.

        :return: Node directories that did not exist before.
        """
        created = []
        for node_dir in self.node_dirs():
            if not os.path.isdir(node_dir):
                created.append(node_dir)
            for subdir in STORAGE_NODE_SUBDIRS:
                os.makedirs(os.path.join(node_dir, subdir), exist_ok=True)
            self._open_permissions(node_dir)
        return created

    def _open_permissions(self, root: str):
        """
        Applies ``self.mode`` to ``root`` and everything below it.

        Entries owned by another user (e.g. files a container already wrote)
        are reported and skipped.
        """
        paths = [root]
        for dirpath, dirnames, filenames in os.walk(root):
            paths.extend(os.path.join(dirpath, name) for name in dirnames + filenames)

        for path in paths:
            if os.path.islink(path):
                continue
            try:
                os.chmod(path, self.mode)
            except PermissionError as e:
                print(f"[storagenode] Could not change permissions of {path}: {e}")
