import dataclasses
import glob
import gzip
import os
import stat
from typing import Optional, List, Iterable, Sequence

from debassemble.exceptions import (
    AssetError,
    AssetNotFoundError,
    AssetPatternError,
    DebassembleFSError,
)
from debassemble.listener import Listener
from debassemble.util import has_glob_magic, normalize_package_path

DEBUG_SYMBOL_DIR = "usr/lib/debug"
MAN_PAGE_DIR = "usr/share/man/"
SHARED_LIBRARY_SUFFIX = ".so"


def debug_filename(path: str) -> str:
    return path + ".debug"


class AssetSource:
    """Content of an asset, either a file on disk or bytes already in memory"""

    __slots__ = ()

    @property
    def path(self) -> Optional[str]:
        return None

    def size(self) -> Optional[int]:
        raise NotImplementedError

    def read_bytes(self) -> bytes:
        raise NotImplementedError

    def debug_source(self) -> Optional[str]:
        return None


class PathAssetSource(AssetSource):
    __slots__ = ("_path",)

    def __init__(self, path: str) -> None:
        self._path = path

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathAssetSource):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)

    @property
    def path(self) -> str:
        return self._path

    def size(self) -> Optional[int]:
        try:
            return os.stat(self._path).st_size
        except FileNotFoundError:
            return None

    def read_bytes(self) -> bytes:
        try:
            with open(self._path, "rb") as fd:
                return fd.read()
        except OSError as e:
            raise DebassembleFSError(
                f"Unable to read asset {self._path} to add to archive: {e.strerror}",
                self._path,
            ) from e

    def debug_source(self) -> str:
        return debug_filename(self._path)


class DataAssetSource(AssetSource):
    __slots__ = ("_data",)

    def __init__(self, data: bytes) -> None:
        self._data = data

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(<{len(self._data)} bytes>)"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataAssetSource):
            return NotImplemented
        return self._data == other._data

    def __hash__(self) -> int:
        return hash(self._data)

    def size(self) -> int:
        return len(self._data)

    def read_bytes(self) -> bytes:
        return self._data


@dataclasses.dataclass(slots=True, frozen=True)
class UnresolvedAsset:
    source_pattern: str
    target_path: str
    mode: int
    is_built: bool = False


@dataclasses.dataclass(slots=True, frozen=True)
class Asset:
    source: AssetSource
    target_path: str
    mode: int
    is_built: bool = False

    @classmethod
    def create(
        cls,
        source: AssetSource,
        target_path: str,
        mode: int,
        is_built: bool = False,
    ) -> "Asset":
        if target_path.endswith("/"):
            source_path = source.path
            if source_path is None:
                raise AssetError(
                    f"The target {target_path} is a directory, but the asset content"
                    " has no file name to install it as"
                )
            target_path = target_path + os.path.basename(source_path)
        target_path = normalize_package_path(target_path)
        if not target_path or target_path.endswith("/"):
            raise AssetError(f'Invalid target path "{target_path}" for an asset')
        return cls(source, target_path, mode, is_built)

    @property
    def is_executable(self) -> bool:
        return (self.mode & 0o111) != 0

    @property
    def is_dynamic_library(self) -> bool:
        basename = os.path.basename(self.target_path)
        return basename.endswith(SHARED_LIBRARY_SUFFIX) or (
            SHARED_LIBRARY_SUFFIX + "." in basename
        )

    @property
    def is_binary(self) -> bool:
        return self.is_executable or self.is_dynamic_library

    def debug_target(self) -> Optional[str]:
        """Where the separated debug symbols of this asset are installed

        Only assets coming from the build output have debug symbols.  The
        result is `usr/lib/debug/<target_path>.debug`.
        """
        if not self.is_built:
            return None
        return debug_filename(f"{DEBUG_SYMBOL_DIR}/{self.target_path}")


def _literal_prefix(pattern: str) -> str:
    parts = []
    for part in pattern.split("/"):
        if has_glob_magic(part):
            break
        parts.append(part)
    return "/".join(parts)


def _glob_files(pattern: str) -> List[str]:
    try:
        matches = glob.glob(pattern, recursive=True, include_hidden=True)
    except (ValueError, OSError, RecursionError) as e:
        raise AssetPatternError(
            f'Unable to parse the asset pattern "{pattern}": {e}', pattern
        ) from e
    files = []
    for match in matches:
        try:
            st = os.stat(match)
        except OSError as e:
            raise DebassembleFSError(
                f"Unable to inspect {match} (matched by {pattern}): {e.strerror}",
                match,
            ) from e
        if stat.S_ISDIR(st.st_mode):
            # Directories are created implicitly from file paths
            continue
        files.append(match)
    return sorted(files)


def resolve_asset(declared: UnresolvedAsset) -> List[Asset]:
    pattern = declared.source_pattern
    is_glob = has_glob_magic(pattern)
    matches = _glob_files(pattern)

    if not matches:
        raise AssetNotFoundError(
            f"The asset {pattern} does not match any files",
            pattern,
        )

    resolved = []
    if is_glob:
        prefix = _literal_prefix(pattern)
        target_dir = declared.target_path.rstrip("/")
        for match in matches:
            relative = os.path.relpath(match, prefix) if prefix else match
            resolved.append(
                Asset.create(
                    PathAssetSource(match),
                    f"{target_dir}/{relative}" if target_dir else relative,
                    declared.mode,
                    declared.is_built,
                )
            )
    else:
        # Without magic, glob only ever yields the literal path itself
        resolved.append(
            Asset.create(
                PathAssetSource(matches[0]),
                declared.target_path,
                declared.mode,
                declared.is_built,
            )
        )
    return resolved


def resolve_assets(declared_assets: Iterable[UnresolvedAsset]) -> List[Asset]:
    resolved: List[Asset] = []
    for declared in declared_assets:
        resolved.extend(resolve_asset(declared))
    return resolved


def built_binaries(assets: Iterable[Asset]) -> List[Asset]:
    return [a for a in assets if a.is_built and a.is_binary]


def debug_symbol_assets(
    assets: Sequence[Asset],
    listener: Listener,
) -> List[Asset]:
    """Assets for debug symbols previously split off from built binaries

    The split itself (objcopy --only-keep-debug) happens outside this code; any
    `<binary>.debug` file found next to a built binary is picked up.
    """
    debug_assets = []
    for asset in built_binaries(assets):
        debug_source = asset.source.debug_source()
        debug_target = asset.debug_target()
        if debug_source is None or debug_target is None:
            continue
        if not os.path.isfile(debug_source):
            continue
        listener.info(f"Adding debug symbols {debug_source} for {asset.target_path}")
        debug_assets.append(
            Asset.create(
                PathAssetSource(debug_source),
                debug_target,
                0o644,
                False,
            )
        )
    return debug_assets


def compress_man_pages(assets: Sequence[Asset], listener: Listener) -> List[Asset]:
    """Replace uncompressed manual pages with gzip compressed ones"""
    result: List[Asset] = []
    for asset in assets:
        if not asset.target_path.startswith(MAN_PAGE_DIR) or asset.target_path.endswith(
            ".gz"
        ):
            result.append(asset)
            continue
        listener.info(f"Compressing manual page {asset.target_path}")
        compressed = gzip.compress(asset.source.read_bytes(), compresslevel=9, mtime=0)
        result.append(
            Asset.create(
                DataAssetSource(compressed),
                asset.target_path + ".gz",
                asset.mode,
                asset.is_built,
            )
        )
    return result


def asset_source_description(source: AssetSource) -> str:
    path = source.path
    return path if path is not None else "-"
