from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from gitsnap import __version__, cli

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_parse_args_parses_flags() -> None:
    threshold = 2.5
    settings = cli.parse_args(
        [
            "user/repo",
            "--output",
            "out.txt",
            "--threshold",
            str(threshold),
            "--include-all",
            "--debug",
            "--workers",
            "2",
        ],
    )

    assert settings.repository == "user/repo"
    assert settings.output == Path("out.txt")
    assert settings.threshold == threshold
    assert settings.include_all is True
    assert settings.debug is True
    assert settings.workers == 2  # noqa: PLR2004


@pytest.mark.unit
def test_parse_args_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("GITSNAP_THRESHOLD", "GITSNAP_WORKERS", "GITSNAP_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)

    settings = cli.parse_args(["user/repo"])

    assert settings.output is None
    assert settings.threshold == pytest.approx(0.1)
    assert settings.include_all is False
    assert settings.workers == 0
    assert not settings.log_file


@pytest.mark.unit
def test_parse_args_reads_environment_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITSNAP_THRESHOLD", "0.5")
    monkeypatch.setenv("GITSNAP_WORKERS", "3")

    settings = cli.parse_args(["user/repo"])
    overridden = cli.parse_args(["user/repo", "-t", "1"])

    assert settings.threshold == pytest.approx(0.5)
    assert settings.workers == 3  # noqa: PLR2004
    assert overridden.threshold == pytest.approx(1.0)


@pytest.mark.unit
def test_malformed_environment_default_is_a_usage_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITSNAP_THRESHOLD", "lots")

    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["user/repo"])

    assert exc_info.value.code == 2  # noqa: PLR2004


@pytest.mark.unit
def test_parse_args_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.parse_args(["--version"])

    assert exc_info.value.code == 0
    assert __version__ in capsys.readouterr().out


@pytest.mark.unit
def test_parse_args_requires_repository() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([])


@pytest.mark.unit
def test_main_returns_one_on_invalid_url(mocker: MockerFixture) -> None:
    clone = mocker.patch.object(cli, "clone_repository")

    assert cli.main(["not a repo"]) == 1
    clone.assert_not_called()


@pytest.mark.unit
def test_snapshot_directory_excludes_output_inside_root(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("a\n", encoding="utf-8")
    output = tmp_path / "snap.txt"
    output.write_text("old snapshot\n", encoding="utf-8")
    settings = cli.parse_args([str(tmp_path), "-o", str(output)])

    stats = cli.snapshot_directory(settings, tmp_path, output)

    text = output.read_text(encoding="utf-8")
    assert "File: a.txt" in text
    assert "snap.txt" not in text
    assert stats.processed == 1
