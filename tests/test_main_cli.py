from pathlib import Path

import pytest

from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.port == 3000


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_init_db_flags() -> None:
    args = _parse_args(["init-db", "--reset", "--seed", "--config", "users.yaml"])
    assert args.command == "init-db"
    assert args.reset is True
    assert args.seed is True
    assert args.config == "users.yaml"


def test_show_users_subcommand_still_available() -> None:
    args = _parse_args(["show-users", "--service-url", "http://example.com:3000"])
    assert args.command == "show-users"
    assert args.service_url == "http://example.com:3000"


def test_init_db_seeds_and_lists_users(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("USERS_DB_DRIVER", "sqlite")
    monkeypatch.setenv("USERS_DB_PATH", str(tmp_path / "users.sqlite3"))

    main(["init-db", "--config", str(tmp_path / "missing.yaml"), "--seed"])

    output = capsys.readouterr().out
    assert "6 user(s) found:" in output
    assert "anakobembash@gmail.com" in output
    assert "Database initialisation complete." in output


def test_init_db_exits_non_zero_when_store_unreachable(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("USERS_DB_DRIVER", "sqlite")
    monkeypatch.setenv("USERS_DB_PATH", str(tmp_path))

    with pytest.raises(SystemExit) as excinfo:
        main(["init-db", "--config", str(tmp_path / "missing.yaml")])

    assert excinfo.value.code == 1


def test_show_users_prints_service_listing(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import httpx

    import main as cli

    def fake_get(url: str, timeout: float) -> httpx.Response:
        assert url == "http://example.com:3000/users"
        return httpx.Response(
            200,
            json=[
                {
                    "id": 1,
                    "username": "bash",
                    "email": "anakobembash@gmail.com",
                    "firstname": "Bashir",
                    "lastname": "Anakobe",
                    "sex": "male",
                    "date_created": "2023-02-01T10:00:00+00:00",
                }
            ],
            request=httpx.Request("GET", url),
        )

    monkeypatch.setattr(cli.httpx, "get", fake_get)

    with pytest.raises(SystemExit) as excinfo:
        main(["show-users", "--service-url", "http://example.com:3000/"])

    assert excinfo.value.code == 0
    output = capsys.readouterr().out
    assert "1 user(s) found:" in output
    assert "Bashir Anakobe" in output


def test_show_users_reports_service_errors(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import httpx

    import main as cli

    def fake_get(url: str, timeout: float) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(cli.httpx, "get", fake_get)

    with pytest.raises(SystemExit) as excinfo:
        main(["show-users"])

    assert excinfo.value.code == 1
    assert "Failed to contact users service" in capsys.readouterr().out
