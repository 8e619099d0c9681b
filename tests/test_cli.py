import pytest

import main
from api.auth import verify_password
from database import AdminRepository, SQLiteDatabase
from utils.config import config


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "cli" / "portal.db")
    monkeypatch.setattr(config.database, "backend", "sqlite")
    monkeypatch.setattr(config.database, "sqlite_path", path)
    return path


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])


def test_detect_arguments():
    args = main.build_parser().parse_args(["detect", "--event-id", "3", "-c", "1", "--headless"])

    assert (args.event_id, args.camera, args.headless) == (3, 1, True)
    assert args.func is main.cmd_detect


def test_threshold_out_of_range_is_rejected(capsys):
    assert main.main(["detect", "--event-id", "3", "--threshold", "1.5"]) == 1
    assert "threshold" in capsys.readouterr().out


def test_create_admin(db_path, capsys):
    code = main.main(["create-admin", "--username", "root", "--password", "changeme",
                      "--email", "root@school.test"])

    assert code == 0
    admin = AdminRepository(SQLiteDatabase(db_path)).find_for_login("root")
    assert admin["role"] == "superadmin"
    assert verify_password("changeme", admin["password_hash"])

    again = main.main(["create-admin", "--username", "root", "--password", "changeme"])
    assert again == 1
    assert "already exists" in capsys.readouterr().out


def test_create_admin_rejects_short_password(db_path):
    assert main.main(["create-admin", "--username", "x", "--password", "123"]) == 1
