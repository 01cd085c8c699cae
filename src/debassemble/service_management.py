import dataclasses
import os
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from debassemble.assets import Asset
from debassemble.exceptions import SystemdUnitError
from debassemble.listener import Listener
from debassemble.maintscript_snippet import ScriptFragments, autoscript
from debassemble.packager_provided_files import pkgfile

LIB_SYSTEMD_SYSTEM_DIR = "lib/systemd/system/"
USR_LIB_SYSTEMD_SYSTEM_DIR = "usr/lib/systemd/system/"
USR_LIB_TMPFILES_D_DIR = "usr/lib/tmpfiles.d/"
_SYSTEMD_UNIT_DIRS = (LIB_SYSTEMD_SYSTEM_DIR, USR_LIB_SYSTEMD_SYSTEM_DIR)

# (package name suffix, file type, install directory)
SYSTEMD_UNIT_FILE_INSTALL_MAPPINGS: Sequence[Tuple[str, str, str]] = (
    ("", "mount", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "path", LIB_SYSTEMD_SYSTEM_DIR),
    ("@", "path", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "service", LIB_SYSTEMD_SYSTEM_DIR),
    ("@", "service", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "socket", LIB_SYSTEMD_SYSTEM_DIR),
    ("@", "socket", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "target", LIB_SYSTEMD_SYSTEM_DIR),
    ("@", "target", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "timer", LIB_SYSTEMD_SYSTEM_DIR),
    ("@", "timer", LIB_SYSTEMD_SYSTEM_DIR),
    ("", "tmpfile", USR_LIB_TMPFILES_D_DIR),
)
_INSTALLED_EXTENSION = {
    "tmpfile": "conf",
}


@dataclasses.dataclass(slots=True, frozen=True)
class InstallRecipe:
    install_path: str
    mode: int


@dataclasses.dataclass(slots=True, frozen=True)
class SystemdUnitOptions:
    enable: bool = True
    start: bool = True
    restart_after_upgrade: bool = True
    stop_on_upgrade: bool = True


@dataclasses.dataclass(slots=True)
class SystemdUnitClassification:
    enable_units: Set[str] = dataclasses.field(default_factory=set)
    start_units: Set[str] = dataclasses.field(default_factory=set)
    aliases: Set[str] = dataclasses.field(default_factory=set)


def find_units(
    directory: str,
    main_package: str,
    unit_name: Optional[str] = None,
) -> Dict[str, InstallRecipe]:
    """Locate packager provided unit files like `debian/<package>.service`

    Returns a mapping from the path of each file found to where and how it
    should be installed.  Finding nothing is not an error.
    """
    installables = {}
    for package_suffix, unit_type, install_dir in SYSTEMD_UNIT_FILE_INSTALL_MAPPINGS:
        package = f"{main_package}{package_suffix}"
        src_path = pkgfile(directory, main_package, package, unit_type, unit_name)
        if src_path is None:
            continue
        extension = _INSTALLED_EXTENSION.get(unit_type, unit_type)
        if unit_name is not None:
            install_filename = f"{unit_name}{package_suffix}.{extension}"
        else:
            install_filename = f"{package}.{extension}"
        installables[src_path] = InstallRecipe(
            os.path.join(install_dir, install_filename),
            0o644,
        )
    return installables


def is_comment(line: str) -> bool:
    return line.startswith(("#", ";"))


def _remove_quote(value: str) -> str:
    if len(value) > 1 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def is_systemd_unit_path(target_path: str) -> bool:
    return target_path.startswith(_SYSTEMD_UNIT_DIRS)


def _unit_assets(assets: Sequence[Asset]) -> Dict[str, Asset]:
    units = {}
    for asset in assets:
        if is_systemd_unit_path(asset.target_path):
            units.setdefault(os.path.basename(asset.target_path), asset)
    return units


def _unit_lines(unit: str, asset: Asset) -> List[str]:
    try:
        content = asset.source.read_bytes().decode("utf-8")
    except UnicodeDecodeError as e:
        raise SystemdUnitError(
            f"The unit file {asset.target_path} is not valid UTF-8: {e}", unit
        ) from e
    return content.splitlines()


def classify_systemd_units(
    package: str,
    assets: Sequence[Asset],
    listener: Listener,
) -> SystemdUnitClassification:
    """Determine which shipped units must be started, enabled or aliased

    All non-template units in the systemd unit directory are started along with
    any unit they pull in via `Also=`.  A unit with an `[Install]` section is
    enabled as well.
    """
    unit_assets = _unit_assets(assets)
    classification = SystemdUnitClassification()
    units = sorted(u for u in unit_assets if "@" not in u)
    seen = set(units)

    while units:
        also_units: Set[str] = set()
        for unit in units:
            listener.info(f"Determining augmentations needed for systemd unit {unit}")
            classification.start_units.add(unit)
            for line in _unit_lines(unit, unit_assets[unit]):
                line = line.strip()
                if not line or is_comment(line):
                    continue
                if "=" not in line:
                    if line.startswith("[Install]"):
                        classification.enable_units.add(unit)
                    continue
                key, value = (v.strip() for v in line.split("=", 1))
                if key == "Also":
                    for other_unit in _remove_quote(value).split():
                        if other_unit in seen:
                            continue
                        if other_unit not in unit_assets:
                            raise SystemdUnitError(
                                f"The unit {other_unit} was required by {unit} (via Also={other_unit})"
                                f" but was not present in the package {package}",
                                other_unit,
                            )
                        seen.add(other_unit)
                        also_units.add(other_unit)
                elif key == "Alias":
                    classification.aliases.update(_remove_quote(value).split())
        units = sorted(also_units)
    return classification


def _tmpfiles(assets: Sequence[Asset]) -> List[str]:
    return [
        os.path.basename(a.target_path)
        for a in assets
        if a.target_path.startswith(USR_LIB_TMPFILES_D_DIR)
    ]


def generate_systemd_snippets(
    package: str,
    assets: Sequence[Asset],
    options: SystemdUnitOptions,
    listener: Listener,
) -> ScriptFragments:
    """Generate the maintainer script snippets dh_installsystemd would add"""
    fragments: ScriptFragments = {}

    tmpfiles = _tmpfiles(assets)
    if tmpfiles:
        autoscript(
            fragments,
            package,
            "postinst",
            "postinst-init-tmpfiles",
            {"TMPFILES": " ".join(tmpfiles)},
            listener=listener,
        )

    classification = classify_systemd_units(package, assets, listener)
    enable_units = sorted(classification.enable_units)
    start_units = sorted(classification.start_units)

    if enable_units:
        snippet = (
            "postinst-systemd-enable"
            if options.enable
            else "postinst-systemd-dont-enable"
        )
        for unit in enable_units:
            autoscript(
                fragments,
                package,
                "postinst",
                snippet,
                {"UNITFILE": unit},
                service_order=True,
                listener=listener,
            )
        autoscript(
            fragments,
            package,
            "postrm",
            "postrm-systemd",
            {"UNITFILES": " ".join(enable_units)},
            listener=listener,
        )

    if start_units:
        substitutions: Mapping[str, str] = {"UNITFILES": " ".join(start_units)}
        if options.restart_after_upgrade:
            snippet = (
                "postinst-systemd-restart"
                if options.start
                else "postinst-systemd-restartnostart"
            )
            substitutions = {
                **substitutions,
                "RESTART_ACTION": "restart" if options.start else "try-restart",
            }
            autoscript(
                fragments,
                package,
                "postinst",
                snippet,
                substitutions,
                service_order=True,
                listener=listener,
            )
        elif options.start:
            autoscript(
                fragments,
                package,
                "postinst",
                "postinst-systemd-start",
                substitutions,
                service_order=True,
                listener=listener,
            )

        if options.restart_after_upgrade or not options.stop_on_upgrade:
            autoscript(
                fragments,
                package,
                "prerm",
                "prerm-systemd-restart",
                substitutions,
                service_order=True,
                listener=listener,
            )
        elif options.start:
            autoscript(
                fragments,
                package,
                "prerm",
                "prerm-systemd",
                substitutions,
                service_order=True,
                listener=listener,
            )

        autoscript(
            fragments,
            package,
            "postrm",
            "postrm-systemd-reload-only",
            substitutions,
            listener=listener,
        )

    return fragments
