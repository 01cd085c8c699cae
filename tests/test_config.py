import os
import textwrap

import pytest

from debassemble.config import (
    PackageConfig,
    load_package_config,
    parse_mode,
)
from debassemble.exceptions import ManifestError


def _write_config(tmp_path, content: str) -> str:
    path = tmp_path / "debassemble.yaml"
    path.write_text(textwrap.dedent(content))
    return str(path)


def test_load_full_config(tmp_path):
    config_path = _write_config(
        tmp_path,
        """\
        package: myapp
        version: "1.2.3"
        revision: "1"
        architecture: amd64
        maintainer: Jane Doe <jane@example.org>
        description: A small example application
        extended-description: |
          This is an example.

          It does nothing useful.
        section: utils
        homepage: https://example.org/myapp
        repository: https://github.com/example/myapp
        depends:
          - libc6
          - $auto
        conflicts: oldapp
        copyright: 2024, Jane Doe
        license: MIT
        license-file: [LICENSE, 2]
        changelog: CHANGELOG
        conf-files:
          - etc/myapp.conf
          - /etc/default/myapp
        maintainer-scripts: debian
        preserve-symlinks: true
        assets:
          - [target/release/myapp, usr/bin/, "755"]
          - source: README.md
            dest: usr/share/doc/myapp/README
            mode: 644
        systemd-units:
          unit-name: myapp
          enable: false
          restart-after-upgrade: false
        """,
    )
    config = load_package_config(config_path)
    base = str(tmp_path)

    assert config.name == "myapp"
    assert config.deb_version == "1.2.3-1"
    assert config.architecture == "amd64"
    assert config.priority == "optional"
    assert config.extended_description == "This is an example.\n\nIt does nothing useful.\n"
    assert config.depends == "libc6, $auto"
    assert config.conflicts == "oldapp"
    assert config.license_file == os.path.join(base, "LICENSE")
    assert config.license_file_skip_lines == 2
    assert config.changelog == os.path.join(base, "CHANGELOG")
    assert config.conf_files == ["/etc/myapp.conf", "/etc/default/myapp"]
    assert config.maintainer_scripts == os.path.join(base, "debian")
    assert config.preserve_symlinks
    assert config.compress_man_pages

    built, readme = config.assets
    assert built.source_pattern == os.path.join(base, "target/release/myapp")
    assert built.target_path == "usr/bin/"
    assert built.mode == 0o755
    assert built.is_built
    assert readme.mode == 0o644
    assert not readme.is_built

    units = config.systemd_units
    assert units is not None
    assert units.unit_name == "myapp"
    options = units.options()
    assert not options.enable
    assert options.start
    assert not options.restart_after_upgrade
    assert options.stop_on_upgrade

    assert config.repository_type() == "Git"
    assert config.output_path() == os.path.join(base, "myapp_1.2.3-1_amd64.deb")


def test_minimal_config_defaults(tmp_path):
    config_path = _write_config(
        tmp_path,
        """\
        package: tool
        version: "0.1"
        maintainer: Someone <someone@example.org>
        description: Tool
        assets: []
        """,
    )
    config = load_package_config(config_path)
    assert config.systemd_units is None
    assert config.maintainer_scripts is None
    assert config.depends == ""
    assert config.conf_files == []


@pytest.mark.parametrize(
    "content,message",
    [
        ("- not a mapping\n", "must be a mapping"),
        ("package: Bad_Name\nversion: '1'\nmaintainer: m\ndescription: d\nassets: []\n", "package name"),
        ("package: ok\nversion: 'abc'\nmaintainer: m\ndescription: d\nassets: []\n", "version"),
        ("package: ok\nversion: '1'\ndescription: d\nassets: []\n", '"maintainer" is required'),
        ("package: ok\nversion: '1'\nmaintainer: m\ndescription: d\nassets: []\nunknown: 1\n", "unknown"),
        ("package: ok\nversion: '1'\nmaintainer: m\ndescription: d\nassets: [[a, b]]\n", "three elements"),
        ("package: ok\nversion: '1'\nmaintainer: m\ndescription: d\nassets: []\npreserve-symlinks: yes please\n", "boolean"),
        ("package: ok\nversion: [\n", "YAML"),
    ],
)
def test_invalid_config(tmp_path, content, message):
    config_path = tmp_path / "pkg.yaml"
    config_path.write_text(content)
    with pytest.raises(ManifestError) as e_info:
        load_package_config(str(config_path))
    assert message in e_info.value.message


def test_yaml_octal_modes(tmp_path):
    config_path = _write_config(
        tmp_path,
        """\
        package: tool
        version: "0.1"
        maintainer: Someone <someone@example.org>
        description: Tool
        assets:
          - [tool, usr/bin/, 0o755]
          - source: README
            dest: usr/share/doc/tool/
            mode: 0o644
          - [tool.conf, etc/, 640]
        """,
    )
    config = load_package_config(config_path)
    assert [a.mode for a in config.assets] == [0o755, 0o644, 0o640]


def test_missing_config_file(tmp_path):
    with pytest.raises(ManifestError):
        load_package_config(str(tmp_path / "missing.yaml"))


@pytest.mark.parametrize(
    "value,expected",
    [
        ("755", 0o755),
        ("0644", 0o644),
        (644, 0o644),
        ("4755", 0o4755),
    ],
)
def test_parse_mode(value, expected):
    assert parse_mode(value, "test") == expected


@pytest.mark.parametrize("value", ["rwx", "99", "77777"])
def test_parse_mode_invalid(value):
    with pytest.raises(ManifestError):
        parse_mode(value, "test")


@pytest.mark.parametrize(
    "repository,expected",
    [
        ("https://github.com/example/app", "Git"),
        ("https://example.org/app.git", "Git"),
        ("git@example.org:app", "Git"),
        ("hg+https://example.org/app", "Hg"),
        ("svn+ssh://example.org/app", "Svn"),
        (":pserver:anonymous@example.org:/cvsroot", "Cvs"),
        ("https://example.org/app", None),
    ],
)
def test_repository_type(repository, expected):
    config = PackageConfig("app", "1.0", "all", "m", "d", repository=repository)
    assert config.repository_type() == expected


def test_output_path_directory(tmp_path):
    config = PackageConfig("app", "2:1.0", "amd64", "m", "d", base_dir=str(tmp_path))
    config.output = "dist/"
    assert config.output_path() == os.path.join(str(tmp_path), "dist/", "app_1.0_amd64.deb")
    config.output = "dist/custom.deb"
    assert config.output_path() == os.path.join(str(tmp_path), "dist/custom.deb")


def test_auto_dependencies(listener):
    config = PackageConfig("app", "1.0", "amd64", "m", "d", depends="libc6, $auto, libssl3")

    def _resolver(binary: str):
        if binary == "broken":
            raise OSError("cannot inspect")
        return ["libc6", f"lib-for-{binary}"]

    deps = config.get_dependencies(["app", "broken"], _resolver, listener)
    assert deps == "libc6, lib-for-app, libssl3"
    assert listener.warnings == ["cannot inspect (no auto deps for broken)"]


def test_auto_dependencies_without_resolver(listener):
    config = PackageConfig("app", "1.0", "amd64", "m", "d", depends="$auto")
    assert config.get_dependencies(["app"], None, listener) == ""
    assert len(listener.warnings) == 1
