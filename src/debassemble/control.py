import os
import textwrap
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from debian.deb822 import Deb822

from debassemble.assets import Asset
from debassemble.config import PackageConfig
from debassemble.exceptions import DebassembleFSError
from debassemble.listener import Listener
from debassemble.maintscript_snippet import apply_maintscript_fragments
from debassemble.packager_provided_files import pkgfile
from debassemble.service_management import generate_systemd_snippets
from debassemble.tar_archive import TarArchive

STANDARDS_VERSION = "3.9.4"
DESCRIPTION_WIDTH = 79
# Order matters: it is the order they appear in the control archive
CONTROL_ARCHIVE_SCRIPTS = ("config", "preinst", "postinst", "prerm", "postrm", "templates")
_NON_EXECUTABLE_CONTROL_FILES = frozenset({"templates"})


def _read_file(path: str, what: str) -> bytes:
    try:
        with open(path, "rb") as fd:
            return fd.read()
    except OSError as e:
        raise DebassembleFSError(
            f"Unable to read the {what} {path}: {e.strerror}", path
        ) from e


def wrap_description(text: str, width: int = DESCRIPTION_WIDTH) -> List[str]:
    """Word wrap a description, rendering empty lines as "."

    Existing line breaks are kept.
    """
    lines = []
    for line in text.splitlines():
        line = line.replace("\t", " ")
        if not line.strip():
            lines.append(".")
            continue
        lines.extend(
            textwrap.wrap(
                line,
                width=width,
                break_long_words=False,
                break_on_hyphens=False,
            )
        )
    return lines


def installed_size_kib(assets: Iterable[Asset]) -> int:
    total = 0
    for asset in assets:
        size = asset.source.size()
        if size is not None:
            # dpkg counts every file as (at least) one KiB block
            total += (size + 1023) // 1024
    return total


def generate_control_file(
    config: PackageConfig,
    installed_size: int,
    dependencies: str,
) -> bytes:
    control = Deb822()
    control["Package"] = config.name
    control["Version"] = config.deb_version
    control["Architecture"] = config.architecture
    repo = config.repository
    if repo is not None:
        if repo.startswith("http"):
            control["Vcs-Browser"] = repo
        kind = config.repository_type()
        if kind is not None:
            control[f"Vcs-{kind}"] = repo
    if config.homepage is not None:
        control["Homepage"] = config.homepage
    if config.section is not None:
        control["Section"] = config.section
    control["Priority"] = config.priority
    control["Standards-Version"] = STANDARDS_VERSION
    control["Maintainer"] = config.maintainer
    control["Installed-Size"] = str(installed_size)
    if dependencies:
        control["Depends"] = dependencies
    for field, value in (
        ("Build-Depends", config.build_depends),
        ("Conflicts", config.conflicts),
        ("Breaks", config.breaks),
        ("Replaces", config.replaces),
        ("Provides", config.provides),
    ):
        if value:
            control[field] = value

    synopsis = " ".join(config.description.split())
    description_lines = [synopsis]
    if config.extended_description:
        description_lines.extend(
            " " + line for line in wrap_description(config.extended_description)
        )
    control["Description"] = "\n".join(description_lines)
    return control.dump().encode("utf-8")


def generate_md5sums(
    asset_hashes: Mapping[str, str],
    conf_files: Sequence[str] = (),
) -> bytes:
    exclude = {c.lstrip("/") for c in conf_files}
    lines = [
        f"{asset_hashes[path]}  {path}\n"
        for path in sorted(asset_hashes)
        if path not in exclude
    ]
    return "".join(lines).encode("utf-8")


def generate_conffiles(conf_files: Sequence[str]) -> bytes:
    return "".join(f"{c}\n" for c in conf_files).encode("utf-8")


def generate_scripts(
    config: PackageConfig,
    assets: Sequence[Asset],
    listener: Listener,
) -> Dict[str, bytes]:
    """Maintainer scripts (and debconf files) to put in the control archive

    When systemd units are configured, the snippets dh_installsystemd would add
    are merged into the packager's scripts.  Any script not generated that way
    is copied from the maintainer scripts directory if present.
    """
    scripts_dir = config.maintainer_scripts
    if scripts_dir is None:
        return {}

    generated: Dict[str, bytes] = {}
    systemd_units = config.systemd_units
    if systemd_units is not None:
        fragments = generate_systemd_snippets(
            config.name,
            assets,
            systemd_units.options(),
            listener,
        )
        generated = apply_maintscript_fragments(
            scripts_dir,
            fragments,
            config.name,
            systemd_units.unit_name,
            listener,
        )

    scripts = {}
    for name in CONTROL_ARCHIVE_SCRIPTS:
        content = generated.get(name)
        if content is None:
            path = pkgfile(scripts_dir, config.name, config.name, name)
            if path is None:
                continue
            content = _read_file(path, "maintainer script")
        scripts[name] = content
    return scripts


def generate_control_archive(
    config: PackageConfig,
    mtime: int,
    asset_hashes: Mapping[str, str],
    installed_size: int,
    dependencies: str,
    scripts: Mapping[str, bytes],
    listener: Optional[Listener] = None,
) -> bytes:
    """Build the uncompressed control.tar of the package"""
    archive = TarArchive(mtime)
    archive.file(
        "./md5sums", generate_md5sums(asset_hashes, config.conf_files), 0o644
    )
    archive.file(
        "./control",
        generate_control_file(config, installed_size, dependencies),
        0o644,
    )
    if config.conf_files:
        archive.file("./conffiles", generate_conffiles(config.conf_files), 0o644)
    for name in CONTROL_ARCHIVE_SCRIPTS:
        content = scripts.get(name)
        if content is None:
            continue
        if listener is not None:
            listener.info(f"Adding {name} to the control archive")
        mode = 0o644 if name in _NON_EXECUTABLE_CONTROL_FILES else 0o755
        archive.file(f"./{name}", content, mode)
    triggers_file = config.triggers_file
    if triggers_file is not None and os.path.isfile(triggers_file):
        archive.file("./triggers", _read_file(triggers_file, "triggers file"), 0o644)
    return archive.into_bytes()
