import gzip
import textwrap

import pytest

from debassemble.commands import debassemble_cmd
from tutil import read_ar_members


def _write_description(tmp_path, assets: str) -> str:
    description = tmp_path / "debassemble.yaml"
    description.write_text(
        textwrap.dedent(
            """\
            package: app
            version: "1.0"
            architecture: amd64
            maintainer: Jane Doe <jane@example.org>
            description: An application
            assets:
            """
        )
        + assets
    )
    return str(description)


def test_cli_builds_package(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("DEBASSEMBLE_COLORS", "never")
    monkeypatch.setenv("SOURCE_DATE_EPOCH", "0")
    (tmp_path / "app").write_bytes(b"binary")
    description = _write_description(tmp_path, "  - [app, usr/bin/, '755']\n")
    out_dir = tmp_path / "out"
    out_dir.mkdir()

    debassemble_cmd.main(
        [
            "--source-date-epoch",
            "1668973695",
            "-Z",
            "gzip",
            "--uniform-compression",
            "-o",
            str(out_dir),
            description,
        ]
    )
    deb_path = out_dir / "app_1.0_amd64.deb"
    assert capsys.readouterr().out.strip() == str(deb_path)

    members = read_ar_members(deb_path.read_bytes())
    assert [m[0] for m in members] == ["debian-binary", "control.tar.gz", "data.tar.gz"]
    assert {m[1] for m in members} == {1668973695}
    gzip.decompress(members[2][3])


def test_cli_reports_errors(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("DEBASSEMBLE_COLORS", "never")
    monkeypatch.setenv("SOURCE_DATE_EPOCH", "0")
    description = _write_description(tmp_path, "  - [missing, usr/bin/, '755']\n")
    with pytest.raises(SystemExit) as e_info:
        debassemble_cmd.main(["--source-date-epoch", "1", description])
    assert e_info.value.code == 1
    assert "does not match any files" in capsys.readouterr().err


def test_cli_reports_invalid_target_path(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("DEBASSEMBLE_COLORS", "never")
    monkeypatch.setenv("SOURCE_DATE_EPOCH", "0")
    (tmp_path / "app").write_bytes(b"binary")
    description = _write_description(tmp_path, "  - [app, '', '755']\n")
    with pytest.raises(SystemExit) as e_info:
        debassemble_cmd.main(["--source-date-epoch", "1", description])
    assert e_info.value.code == 1
    assert "Invalid target path" in capsys.readouterr().err
