import os
import stat
from datetime import datetime

from storjup_nas.UTILS.file_ops import atomic_write_text, backup_copy, move_into, timestamped_dir


def test_atomic_write_replaces_content_and_keeps_mode(tmp_path):
    target = tmp_path / "docker-compose.yaml"
    target.write_text("old\n")
    os.chmod(target, 0o640)
    atomic_write_text(str(target), "services: {}\n")
    assert target.read_text() == "services: {}\n"
    assert stat.S_IMODE(os.stat(target).st_mode) == 0o640
    assert [p.name for p in tmp_path.iterdir()] == ["docker-compose.yaml"]


def test_atomic_write_new_file(tmp_path):
    target = tmp_path / "new.yaml"
    atomic_write_text(str(target), "a: 1\n")
    assert target.read_text() == "a: 1\n"


def test_backup_copy(tmp_path):
    source = tmp_path / "docker-compose.yaml"
    source.write_text("services: {}\n")
    backup = backup_copy(str(source), str(source) + ".before-https-config")
    assert open(backup).read() == "services: {}\n"


def test_timestamped_dir_and_move(tmp_path):
    backup_dir = timestamped_dir(str(tmp_path), now=datetime(2024, 5, 1, 13, 45, 10))
    assert os.path.basename(backup_dir) == "backup_20240501_134510"
    compose = tmp_path / "docker-compose.yaml"
    compose.write_text("x")
    moved = move_into(backup_dir, [str(compose), str(tmp_path / ".env")])
    assert moved == [os.path.join(backup_dir, "docker-compose.yaml")]
    assert not compose.exists()
