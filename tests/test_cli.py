import io
import json

import pytest

from fakes import StaticChecker
from mdlinkcheck import cli
from mdlinkcheck.models import LinkStatus, Verdict

DEAD = Verdict("https://a.test/gone", LinkStatus.DEAD, 404)


def test_parse_args_defaults():
    args = cli.parse_args([])
    assert args.sources == []
    assert not args.quiet and not args.verbose and not args.progress and not args.retry
    assert args.alive is None
    assert str(args.journal) == "data.json"


def test_parse_args_alive_codes():
    args = cli.parse_args(["-a", "200,206", "README.md"])
    assert args.alive == frozenset({200, 206})
    assert cli.build_options(args).alive_status_codes == frozenset({200, 206})


def test_malformed_alive_codes_fail_fast(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.parse_args(["-a", "200,abc"])
    assert excinfo.value.code == 2
    assert "Invalid HTTP status code" in capsys.readouterr().err


def test_dead_links_do_not_fail_the_run(tmp_path):
    (tmp_path / "README.md").write_text("[x](https://a.test/gone)", encoding="utf-8")
    stdout = io.StringIO()

    code = cli.run(["README.md"], checker=StaticChecker([DEAD]), stdout=stdout)

    assert code == 0
    assert "ERROR: 1 dead links found!" in stdout.getvalue()
    journal = json.loads((tmp_path / "data.json").read_text(encoding="utf-8"))
    assert journal["https://a.test/gone"]["url"] == "README.md"


def test_checker_failure_exits_with_one(tmp_path):
    (tmp_path / "README.md").write_text("explode", encoding="utf-8")
    code = cli.run(
        ["README.md"],
        checker=StaticChecker(errors=["explode"]),
        stdout=io.StringIO(),
    )
    assert code == 1


def test_directory_argument_exits_with_one(tmp_path, capsys):
    (tmp_path / "docs").mkdir()
    checker = StaticChecker([DEAD])

    code = cli.run(["docs"], checker=checker, stdout=io.StringIO())

    assert code == 1
    assert checker.calls == []
    err = capsys.readouterr().err
    assert "is a directory" in err
    assert "\x1b[" not in err


def test_missing_config_exits_with_one(tmp_path, capsys):
    code = cli.run(["-c", "nope.json"], checker=StaticChecker(), stdout=io.StringIO())
    assert code == 1
    assert "Cannot access config file" in capsys.readouterr().err


def test_config_overrides_alive_flag(tmp_path):
    (tmp_path / "README.md").write_text("text", encoding="utf-8")
    (tmp_path / "config.json").write_text(json.dumps({"aliveStatusCodes": [200, 301]}), encoding="utf-8")
    checker = StaticChecker()

    cli.run(["-a", "204", "-c", "config.json", "README.md"], checker=checker, stdout=io.StringIO())

    assert checker.calls[0][1].alive_status_codes == frozenset({200, 301})


def test_stdin_is_read_without_arguments(tmp_path):
    checker = StaticChecker([DEAD])
    stdout = io.StringIO()

    code = cli.run([], checker=checker, stdout=stdout, stdin=io.BytesIO(b"[x](https://a.test/gone)"))

    assert code == 0
    assert checker.calls[0][0] == "[x](https://a.test/gone)"
    assert "FILE:" not in stdout.getvalue()


def test_custom_journal_path(tmp_path):
    (tmp_path / "README.md").write_text("text", encoding="utf-8")
    cli.run(
        ["-j", "history.json", "README.md"],
        checker=StaticChecker([DEAD]),
        stdout=io.StringIO(),
    )
    assert (tmp_path / "history.json").exists()
    assert not (tmp_path / "data.json").exists()


def test_invalid_config_flag_exits_with_one(tmp_path):
    (tmp_path / "README.md").write_text("text", encoding="utf-8")
    (tmp_path / "config.json").write_text(json.dumps({"ignoreDisable": "false"}), encoding="utf-8")
    checker = StaticChecker()

    code = cli.run(["-c", "config.json", "README.md"], checker=checker, stdout=io.StringIO())

    assert code == 1
    assert checker.calls == []


def test_malformed_journal_entry_does_not_abort_run(tmp_path):
    (tmp_path / "README.md").write_text("text", encoding="utf-8")
    (tmp_path / "data.json").write_text(json.dumps({"k": ["x"]}), encoding="utf-8")

    code = cli.run(["README.md"], checker=StaticChecker([DEAD]), stdout=io.StringIO())

    assert code == 0
    journal = json.loads((tmp_path / "data.json").read_text(encoding="utf-8"))
    assert list(journal) == ["https://a.test/gone"]


class _Terminal(io.StringIO):
    def isatty(self):
        return True


def test_fatal_message_colored_only_on_terminals():
    terminal = _Terminal()
    assert cli._fatal("boom", terminal) == 1
    assert "\x1b[" in terminal.getvalue()

    plain = io.StringIO()
    cli._fatal("boom", plain)
    assert plain.getvalue() == "boom\n"
