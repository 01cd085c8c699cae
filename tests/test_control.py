from debian.deb822 import Deb822

from debassemble.assets import Asset, DataAssetSource
from debassemble.config import PackageConfig, SystemdUnitsConfig
from debassemble.control import (
    generate_control_archive,
    generate_control_file,
    generate_md5sums,
    generate_scripts,
    installed_size_kib,
    wrap_description,
)
from tutil import read_tar, tar_file_contents, tar_names


def _config(**kwargs) -> PackageConfig:
    return PackageConfig(
        "myapp",
        "1.0",
        "amd64",
        "Jane Doe <jane@example.org>",
        "An example application",
        **kwargs,
    )


def test_wrap_description():
    text = "This is a test string for wrapping.\n\nSecond paragraph"
    assert wrap_description(text, 10) == [
        "This is a",
        "test",
        "string for",
        "wrapping.",
        ".",
        "Second",
        "paragraph",
    ]


def test_installed_size_rounds_up_per_file():
    assets = [
        Asset.create(DataAssetSource(b"x"), "usr/share/a", 0o644),
        Asset.create(DataAssetSource(b"x" * 1024), "usr/share/b", 0o644),
        Asset.create(DataAssetSource(b"x" * 1025), "usr/share/c", 0o644),
    ]
    assert installed_size_kib(assets) == 4


def test_control_file_fields():
    config = _config(
        repository="https://github.com/example/myapp",
        homepage="https://example.org",
        section="utils",
        extended_description="Line one\n\nLine two",
        conflicts="oldapp",
    )
    control = Deb822(generate_control_file(config, 12, "libc6 (>= 2.31)").decode("utf-8"))
    assert control["Package"] == "myapp"
    assert control["Version"] == "1.0"
    assert control["Architecture"] == "amd64"
    assert control["Vcs-Browser"] == "https://github.com/example/myapp"
    assert control["Vcs-Git"] == "https://github.com/example/myapp"
    assert control["Homepage"] == "https://example.org"
    assert control["Section"] == "utils"
    assert control["Priority"] == "optional"
    assert control["Standards-Version"] == "3.9.4"
    assert control["Maintainer"] == "Jane Doe <jane@example.org>"
    assert control["Installed-Size"] == "12"
    assert control["Depends"] == "libc6 (>= 2.31)"
    assert control["Conflicts"] == "oldapp"
    assert "Breaks" not in control
    assert control["Description"].splitlines() == [
        "An example application",
        " Line one",
        " .",
        " Line two",
    ]


def test_control_file_without_depends():
    control = generate_control_file(_config(), 0, "").decode("utf-8")
    assert "Depends" not in control
    assert control.startswith("Package: myapp\nVersion: 1.0\nArchitecture: amd64\n")
    assert control.endswith("Description: An example application\n")


def test_md5sums_are_sorted_and_skip_conffiles():
    md5sums = generate_md5sums(
        {
            "usr/bin/b": "b" * 32,
            "etc/myapp.conf": "c" * 32,
            "usr/bin/a": "a" * 32,
        },
        ["/etc/myapp.conf"],
    )
    assert md5sums == (
        f"{'a' * 32}  usr/bin/a\n" f"{'b' * 32}  usr/bin/b\n"
    ).encode("utf-8")


def test_control_archive_layout(tmp_path, mtime):
    triggers = tmp_path / "triggers"
    triggers.write_text("interest-noawait /usr/share/myapp\n")
    config = _config(conf_files=["/etc/myapp.conf"], triggers_file=str(triggers))
    scripts = {"postinst": b"#!/bin/sh\n", "templates": b"Template: x\n"}
    data = generate_control_archive(
        config, mtime, {"usr/bin/myapp": "0" * 32}, 1, "", scripts
    )
    assert tar_names(data) == [
        "md5sums",
        "control",
        "conffiles",
        "postinst",
        "templates",
        "triggers",
    ]
    modes = {m.name[2:]: m.mode for m in read_tar(data)}
    assert modes["postinst"] == 0o755
    assert modes["templates"] == 0o644
    assert modes["control"] == 0o644
    contents = tar_file_contents(data)
    assert contents["conffiles"] == b"/etc/myapp.conf\n"
    assert contents["md5sums"] == f"{'0' * 32}  usr/bin/myapp\n".encode("utf-8")
    assert contents["triggers"] == b"interest-noawait /usr/share/myapp\n"


def test_generate_scripts_without_scripts_dir(listener):
    assert generate_scripts(_config(), [], listener) == {}


def test_generate_scripts_copies_user_scripts(tmp_path, listener):
    names = ["config", "preinst", "postinst", "prerm", "postrm", "templates"]
    for name in names:
        (tmp_path / name).write_text(f"some contents: {name}")
    config = _config(maintainer_scripts=str(tmp_path))
    scripts = generate_scripts(config, [], listener)
    assert list(scripts) == names
    for name in names:
        assert scripts[name] == f"some contents: {name}".encode("utf-8")


def test_generate_scripts_for_unit(tmp_path, listener):
    config = _config(
        maintainer_scripts=str(tmp_path),
        systemd_units=SystemdUnitsConfig(),
    )
    assets = [
        Asset.create(
            DataAssetSource(b"[Service]\nExecStart=/usr/bin/myapp\n"),
            "lib/systemd/system/some.service",
            0o644,
        )
    ]
    scripts = generate_scripts(config, assets, listener)
    assert sorted(scripts) == ["postinst", "postrm", "prerm"]
    for content in scripts.values():
        assert content.startswith(b"#!/bin/sh\nset -e\n")
