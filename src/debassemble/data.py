import gzip
import hashlib
import os
from typing import Dict, Optional, Sequence, Tuple

from debassemble.assets import Asset, asset_source_description
from debassemble.config import PackageConfig
from debassemble.exceptions import DebassembleFSError
from debassemble.listener import Listener
from debassemble.tar_archive import TarArchive


def _symlink_target(asset: Asset) -> Optional[str]:
    source_path = asset.source.path
    if source_path is None or not os.path.islink(source_path):
        return None
    try:
        return os.readlink(source_path)
    except OSError as e:
        raise DebassembleFSError(
            f"Unable to read the symlink {source_path}: {e.strerror}", source_path
        ) from e


def generate_data_archive(
    assets: Sequence[Asset],
    mtime: int,
    preserve_symlinks: bool,
    listener: Listener,
) -> Tuple[bytes, Dict[str, str]]:
    """Build the uncompressed data.tar with all the assets

    Returns the archive and the md5 checksum of every regular file in it
    (keyed by the path inside the package).
    """
    archive = TarArchive(mtime)
    hashes = {}
    for asset in assets:
        listener.info(
            f"{asset_source_description(asset.source)} -> {asset.target_path}"
        )
        if preserve_symlinks:
            link_target = _symlink_target(asset)
            if link_target is not None:
                archive.symlink(asset.target_path, link_target)
                continue
        data = asset.source.read_bytes()
        hashes[asset.target_path] = hashlib.md5(data).hexdigest()
        archive.file(asset.target_path, data, asset.mode)
    return archive.into_bytes(), hashes


def _read_text(path: str, what: str) -> str:
    try:
        with open(path, "rt", encoding="utf-8") as fd:
            return fd.read()
    except OSError as e:
        raise DebassembleFSError(
            f"Unable to read the {what} {path}: {e.strerror}", path
        ) from e


def generate_copyright_asset(config: PackageConfig) -> bytes:
    lines = [f"Upstream Name: {config.name}\n"]
    source = config.repository or config.homepage
    if source is not None:
        lines.append(f"Source: {source}\n")
    if config.copyright is not None:
        lines.append(f"Copyright: {config.copyright}\n")
    if config.license is not None:
        lines.append(f"License: {config.license}\n")
    if config.license_file is not None:
        license_text = _read_text(config.license_file, "license file")
        for line in license_text.splitlines()[config.license_file_skip_lines :]:
            lines.append(" .\n" if line == " " else f"{line}\n")
    return "".join(lines).encode("utf-8")


def generate_changelog_asset(config: PackageConfig) -> Optional[bytes]:
    if config.changelog is None:
        return None
    try:
        with open(config.changelog, "rb") as fd:
            content = fd.read()
    except OSError as e:
        raise DebassembleFSError(
            f"Unable to read the changelog file {config.changelog}: {e.strerror}",
            config.changelog,
        ) from e
    return gzip.compress(content, compresslevel=9, mtime=0)
