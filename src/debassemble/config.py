import dataclasses
import os
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
    IO,
)

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarint import OctalInt

from debassemble.assets import UnresolvedAsset
from debassemble.exceptions import DebassembleRuntimeError, ManifestError
from debassemble.listener import Listener
from debassemble.service_management import SystemdUnitOptions
from debassemble.util import (
    PKGNAME_REGEX,
    PKGVERSION_REGEX,
    compute_output_filename,
)

MANIFEST_YAML = YAML()

AUTO_DEPENDS = "$auto"

# Takes the path of a binary and returns the packages it needs at runtime
DependencyResolver = Callable[[str], Sequence[str]]

_KNOWN_KEYS = frozenset(
    {
        "package",
        "version",
        "revision",
        "architecture",
        "maintainer",
        "description",
        "extended-description",
        "section",
        "priority",
        "homepage",
        "repository",
        "depends",
        "build-depends",
        "conflicts",
        "breaks",
        "replaces",
        "provides",
        "copyright",
        "license",
        "license-file",
        "changelog",
        "conf-files",
        "triggers-file",
        "maintainer-scripts",
        "preserve-symlinks",
        "separate-debug-symbols",
        "compress-man-pages",
        "build-dir",
        "output",
        "assets",
        "systemd-units",
    }
)
_SYSTEMD_UNITS_KEYS = frozenset(
    {
        "unit-scripts",
        "unit-name",
        "enable",
        "start",
        "restart-after-upgrade",
        "stop-on-upgrade",
    }
)


@dataclasses.dataclass(slots=True)
class SystemdUnitsConfig:
    unit_scripts: Optional[str] = None
    unit_name: Optional[str] = None
    enable: bool = True
    start: bool = True
    restart_after_upgrade: bool = True
    stop_on_upgrade: bool = True

    def options(self) -> SystemdUnitOptions:
        return SystemdUnitOptions(
            enable=self.enable,
            start=self.start,
            restart_after_upgrade=self.restart_after_upgrade,
            stop_on_upgrade=self.stop_on_upgrade,
        )


@dataclasses.dataclass(slots=True)
class PackageConfig:
    name: str
    version: str
    architecture: str
    maintainer: str
    description: str
    base_dir: str = "."
    revision: Optional[str] = None
    extended_description: Optional[str] = None
    section: Optional[str] = None
    priority: str = "optional"
    homepage: Optional[str] = None
    repository: Optional[str] = None
    depends: str = ""
    build_depends: Optional[str] = None
    conflicts: Optional[str] = None
    breaks: Optional[str] = None
    replaces: Optional[str] = None
    provides: Optional[str] = None
    copyright: Optional[str] = None
    license: Optional[str] = None
    license_file: Optional[str] = None
    license_file_skip_lines: int = 0
    changelog: Optional[str] = None
    conf_files: List[str] = dataclasses.field(default_factory=list)
    triggers_file: Optional[str] = None
    maintainer_scripts: Optional[str] = None
    preserve_symlinks: bool = False
    separate_debug_symbols: bool = False
    compress_man_pages: bool = True
    build_dir: str = "target/release"
    output: Optional[str] = None
    assets: List[UnresolvedAsset] = dataclasses.field(default_factory=list)
    systemd_units: Optional[SystemdUnitsConfig] = None

    @property
    def deb_version(self) -> str:
        if self.revision:
            return f"{self.version}-{self.revision}"
        return self.version

    def repository_type(self) -> Optional[str]:
        """Guess the version control system of the repository URL"""
        repo = self.repository
        if repo is None:
            return None
        if (
            repo.startswith("git+")
            or repo.endswith(".git")
            or "git@" in repo
            or "github.com" in repo
            or "gitlab.com" in repo
        ):
            return "Git"
        if repo.startswith("cvs+") or "pserver:" in repo or "@cvs." in repo:
            return "Cvs"
        if repo.startswith("hg+") or "hg@" in repo or "/hg." in repo:
            return "Hg"
        if repo.startswith("svn+") or "/svn." in repo:
            return "Svn"
        return None

    def path_in_package_dir(self, path: str) -> str:
        return os.path.join(self.base_dir, path)

    def output_path(self) -> str:
        filename = compute_output_filename(
            self.name, self.deb_version, self.architecture
        )
        output = self.output
        if output is None:
            return os.path.join(self.base_dir, filename)
        output = self.path_in_package_dir(output)
        if os.path.isdir(output) or output.endswith("/"):
            return os.path.join(output, filename)
        return output

    def get_dependencies(
        self,
        binaries: Sequence[str],
        resolver: Optional[DependencyResolver],
        listener: Listener,
    ) -> str:
        """Compute the value of the Depends field

        `$auto` is replaced by whatever the resolver reports for each binary.
        A binary the resolver fails on is skipped with a warning.
        """
        deps: Dict[str, None] = {}
        for word in self.depends.split(","):
            word = word.strip()
            if not word:
                continue
            if word != AUTO_DEPENDS:
                deps[word] = None
                continue
            if resolver is None:
                listener.warning(
                    f"The depends field contains {AUTO_DEPENDS}, but no dependency resolver"
                    " is available. Ignoring it"
                )
                continue
            for binary in binaries:
                try:
                    resolved = resolver(binary)
                except (DebassembleRuntimeError, OSError) as e:
                    listener.warning(f"{e} (no auto deps for {binary})")
                    continue
                for dep in resolved:
                    deps[dep] = None
        return ", ".join(deps)


def _as_str(value: Any, key: str, config_path: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ManifestError(f'The key "{key}" in {config_path} must be a string')
    return str(value)


def _opt_str(data: Mapping[str, Any], key: str, config_path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    return _as_str(value, key, config_path)


def _opt_bool(
    data: Mapping[str, Any], key: str, config_path: str, default: bool
) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ManifestError(
            f'The key "{key}" in {config_path} must be a boolean (true or false)'
        )
    return value


def _relationship_field(
    data: Mapping[str, Any], key: str, config_path: str
) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, list):
        return ", ".join(_as_str(v, key, config_path).strip() for v in value)
    return _as_str(value, key, config_path)


def parse_mode(value: Union[str, int], where: str) -> int:
    """Parse an octal permission like "755" or "0644"

    YAML octal integers (`0o755`) are used as they are.  Other integers are
    read by their digits so an unquoted `755` in YAML means 0o755.
    """
    if isinstance(value, bool):
        raise ManifestError(f'The mode "{value}" of {where} is not a valid octal mode')
    if isinstance(value, OctalInt):
        mode = int(value)
    else:
        try:
            mode = int(str(value), 8)
        except ValueError:
            raise ManifestError(
                f'The mode "{value}" of {where} is not a valid octal mode'
            ) from None
    if mode < 0 or mode > 0o7777:
        raise ManifestError(f'The mode "{value}" of {where} is out of range')
    return mode


def _parse_asset(
    raw: Any,
    idx: int,
    base_dir: str,
    build_dir: str,
    config_path: str,
) -> UnresolvedAsset:
    where = f"assets[{idx}] in {config_path}"
    if isinstance(raw, list):
        if len(raw) != 3:
            raise ManifestError(
                f"The asset {where} must be a list of exactly three elements: source, dest and mode"
            )
        source, dest, mode = raw
    elif isinstance(raw, dict):
        unknown = set(raw) - {"source", "dest", "mode"}
        if unknown:
            raise ManifestError(
                f'Unknown key(s) {", ".join(sorted(unknown))} in {where}'
            )
        try:
            source, dest, mode = raw["source"], raw["dest"], raw["mode"]
        except KeyError as e:
            raise ManifestError(f"The asset {where} is missing the {e.args[0]} key") from None
    else:
        raise ManifestError(
            f"The asset {where} must be either a list or a mapping"
        )
    source = _as_str(source, "source", where)
    dest = _as_str(dest, "dest", where)
    source_path = os.path.normpath(os.path.join(base_dir, source))
    build_path = os.path.normpath(os.path.join(base_dir, build_dir))
    is_built = source_path.startswith(build_path + os.sep)
    return UnresolvedAsset(
        source_path,
        dest,
        parse_mode(mode, where),
        is_built,
    )


def _parse_conf_files(value: Any, config_path: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        entries = value.split()
    elif isinstance(value, list):
        entries = [_as_str(v, "conf-files", config_path) for v in value]
    else:
        raise ManifestError(
            f'The key "conf-files" in {config_path} must be a list of paths'
        )
    return ["/" + e.lstrip("/") for e in entries]


def _parse_systemd_units(value: Any, base_dir: str, config_path: str) -> SystemdUnitsConfig:
    if value is True:
        return SystemdUnitsConfig()
    if not isinstance(value, dict):
        raise ManifestError(
            f'The key "systemd-units" in {config_path} must be a mapping'
        )
    unknown = set(value) - _SYSTEMD_UNITS_KEYS
    if unknown:
        raise ManifestError(
            f'Unknown key(s) {", ".join(sorted(unknown))} in "systemd-units" of {config_path}'
        )
    where = f"systemd-units in {config_path}"
    unit_scripts = _opt_str(value, "unit-scripts", where)
    return SystemdUnitsConfig(
        unit_scripts=(
            os.path.join(base_dir, unit_scripts) if unit_scripts is not None else None
        ),
        unit_name=_opt_str(value, "unit-name", where),
        enable=_opt_bool(value, "enable", where, True),
        start=_opt_bool(value, "start", where, True),
        restart_after_upgrade=_opt_bool(value, "restart-after-upgrade", where, True),
        stop_on_upgrade=_opt_bool(value, "stop-on-upgrade", where, True),
    )


def package_config_from_dict(
    data: Any,
    config_path: str,
    base_dir: str,
) -> PackageConfig:
    if not isinstance(data, dict):
        raise ManifestError(f"The document {config_path} must be a mapping")
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        raise ManifestError(
            f'Unknown key(s) in {config_path}: {", ".join(sorted(unknown))}'
        )
    for required in ("package", "version", "maintainer", "description", "assets"):
        if data.get(required) is None:
            raise ManifestError(f'The key "{required}" is required in {config_path}')

    name = _as_str(data["package"], "package", config_path)
    if not PKGNAME_REGEX.fullmatch(name):
        raise ManifestError(f'The package name "{name}" is not a valid Debian package name')
    version = _as_str(data["version"], "version", config_path)
    revision = _opt_str(data, "revision", config_path)
    full_version = f"{version}-{revision}" if revision else version
    if not PKGVERSION_REGEX.fullmatch(full_version):
        raise ManifestError(f'The version "{full_version}" is not a valid Debian version')

    build_dir = _opt_str(data, "build-dir", config_path) or "target/release"

    raw_assets = data["assets"]
    if not isinstance(raw_assets, list):
        raise ManifestError(f'The key "assets" in {config_path} must be a list')
    assets = [
        _parse_asset(raw, idx, base_dir, build_dir, config_path)
        for idx, raw in enumerate(raw_assets)
    ]

    license_file = data.get("license-file")
    license_file_skip_lines = 0
    if isinstance(license_file, list):
        if len(license_file) != 2:
            raise ManifestError(
                f'The key "license-file" in {config_path} must be a path or a [path, skip-lines] pair'
            )
        license_file, skip = license_file
        if not isinstance(skip, int) or isinstance(skip, bool) or skip < 0:
            raise ManifestError(
                f'The number of lines to skip in "license-file" of {config_path} must be a non-negative integer'
            )
        license_file_skip_lines = skip
    if license_file is not None:
        license_file = _as_str(license_file, "license-file", config_path)

    def _path(key: str) -> Optional[str]:
        value = _opt_str(data, key, config_path)
        return os.path.join(base_dir, value) if value is not None else None

    systemd_units = data.get("systemd-units")

    return PackageConfig(
        name=name,
        version=version,
        revision=revision,
        architecture=_opt_str(data, "architecture", config_path) or "all",
        maintainer=_as_str(data["maintainer"], "maintainer", config_path),
        description=_as_str(data["description"], "description", config_path),
        base_dir=base_dir,
        extended_description=_opt_str(data, "extended-description", config_path),
        section=_opt_str(data, "section", config_path),
        priority=_opt_str(data, "priority", config_path) or "optional",
        homepage=_opt_str(data, "homepage", config_path),
        repository=_opt_str(data, "repository", config_path),
        depends=_relationship_field(data, "depends", config_path) or "",
        build_depends=_relationship_field(data, "build-depends", config_path),
        conflicts=_relationship_field(data, "conflicts", config_path),
        breaks=_relationship_field(data, "breaks", config_path),
        replaces=_relationship_field(data, "replaces", config_path),
        provides=_relationship_field(data, "provides", config_path),
        copyright=_opt_str(data, "copyright", config_path),
        license=_opt_str(data, "license", config_path),
        license_file=(
            os.path.join(base_dir, license_file) if license_file is not None else None
        ),
        license_file_skip_lines=license_file_skip_lines,
        changelog=_path("changelog"),
        conf_files=_parse_conf_files(data.get("conf-files"), config_path),
        triggers_file=_path("triggers-file"),
        maintainer_scripts=_path("maintainer-scripts"),
        preserve_symlinks=_opt_bool(data, "preserve-symlinks", config_path, False),
        separate_debug_symbols=_opt_bool(
            data, "separate-debug-symbols", config_path, False
        ),
        compress_man_pages=_opt_bool(data, "compress-man-pages", config_path, True),
        build_dir=build_dir,
        output=_opt_str(data, "output", config_path),
        assets=assets,
        systemd_units=(
            _parse_systemd_units(systemd_units, base_dir, config_path)
            if systemd_units is not None and systemd_units is not False
            else None
        ),
    )


def _parse_config(fd: Union[IO[bytes], str], config_path: str) -> PackageConfig:
    try:
        data = MANIFEST_YAML.load(fd)
    except YAMLError as e:
        msg = str(e).rstrip()
        raise ManifestError(
            f"Could not parse {config_path} as a YAML document: {msg}"
        ) from e
    base_dir = os.path.dirname(config_path) or "."
    return package_config_from_dict(data, config_path, base_dir)


def load_package_config(
    config_path: str,
    *,
    fd: Optional[Union[IO[bytes], str]] = None,
) -> PackageConfig:
    if fd is not None:
        return _parse_config(fd, config_path)
    try:
        with open(config_path, "rb") as config_fd:
            return _parse_config(config_fd, config_path)
    except FileNotFoundError as e:
        raise ManifestError(f"The package description {config_path} does not exist") from e
