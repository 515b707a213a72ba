from main import _parse_args, main


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.port is None


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_waitlist_command_prints_entries(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("WAITLIST_DB_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.delenv("WAITLIST_CONFIG", raising=False)

    assert main(["waitlist"]) == 0
    assert "The waitlist is empty." in capsys.readouterr().out

    from waitlist_api.database import Database

    database = Database(tmp_path / "cli.sqlite3")
    database.add_waitlist_entry("first@example.com")
    database.add_waitlist_entry("second@example.com")

    assert main(["waitlist"]) == 0
    out = capsys.readouterr().out
    assert "2 waitlist signup(s)" in out
    assert out.index("second@example.com") < out.index("first@example.com")


def test_users_command_lists_google_accounts(tmp_path, monkeypatch, capsys) -> None:
    monkeypatch.setenv("WAITLIST_DB_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.delenv("WAITLIST_CONFIG", raising=False)

    assert main(["users"]) == 0
    assert "No users have signed in yet." in capsys.readouterr().out

    from waitlist_api.database import Database

    Database(tmp_path / "cli.sqlite3").find_or_create_user("google-9", "ada@example.com", "Ada", None)

    assert main(["users"]) == 0
    assert "ada@example.com" in capsys.readouterr().out
