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
File helpers for backups and atomic rewrites of configuration files.
"""
import os
import shutil
import tempfile
from datetime import datetime
from typing import Iterable, List, Optional


def atomic_write_text(path: str, content: str):
    """
    Writes a text file through a temporary sibling and renames it into place.

    The file mode of an existing target is preserved.

    :param path: Destination path.
    :param content: Text to write, encoded as UTF-8.
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def backup_copy(source: str, destination: str) -> str:
    """
    Copies a file, overwriting any previous backup.

    :return: The destination path.
    """
    shutil.copy2(source, destination)
    return destination


def timestamped_dir(base_dir: str, prefix: str = "backup", now: Optional[datetime] = None) -> str:
    """
    Creates ``<base_dir>/<prefix>_YYYYmmdd_HHMMSS`` and returns its path.
    """
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    path = os.path.join(base_dir, f"{prefix}_{stamp}")
    os.makedirs(path, exist_ok=True)
    return path


def move_into(directory: str, paths: Iterable[str]) -> List[str]:
    """
    Moves the existing files among ``paths`` into ``directory``.

    Missing files are skipped.

    :return: Paths of the moved files at their new location.
    """
    moved = []
    for path in paths:
        if not os.path.exists(path):
            continue
        target = os.path.join(directory, os.path.basename(path))
        shutil.move(path, target)
        moved.append(target)
    return moved
