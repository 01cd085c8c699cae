import io
import tarfile
from typing import List, Set

from debassemble.exceptions import ArchiveFormatError

DIRECTORY_MODE = 0o755
SYMLINK_MODE = 0o777


def _parent_directories(path: str) -> List[str]:
    # "./control" and "control" both live directly in the archive root
    parts = [p for p in path.rstrip("/").split("/")[:-1] if p not in ("", ".")]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


class TarArchive:
    """Append-only builder for the control.tar and data.tar members of a deb

    Every entry shares the mtime given to the constructor.  Before a file or
    symlink entry is written, any of its ancestor directories that have not
    been seen yet are emitted as directory entries, so consumers never see a
    path whose parent was not declared first.
    """

    def __init__(self, mtime: int) -> None:
        self.mtime = mtime
        self._added_directories: Set[str] = set()
        self._buffer = io.BytesIO()
        self._tar = tarfile.open(
            mode="w",
            fileobj=self._buffer,
            format=tarfile.GNU_FORMAT,
            encoding="utf-8",
            errors="strict",
        )
        self._finished = False

    def _tar_info(self, path: str, path_type: bytes, mode: int) -> tarfile.TarInfo:
        tar_info = tarfile.TarInfo(path)
        tar_info.type = path_type
        tar_info.mode = mode
        tar_info.mtime = self.mtime
        tar_info.uid = 0
        tar_info.gid = 0
        tar_info.uname = "root"
        tar_info.gname = "root"
        tar_info.size = 0
        return tar_info

    def _append(self, tar_info: tarfile.TarInfo, data: bytes = b"") -> None:
        if self._finished:
            raise RuntimeError("The archive has already been finished")
        try:
            if data:
                self._tar.addfile(tar_info, fileobj=io.BytesIO(data))
            else:
                self._tar.addfile(tar_info)
        except (UnicodeEncodeError, ValueError) as e:
            raise ArchiveFormatError(
                f"Cannot represent {tar_info.name} in a tar archive: {e}",
                tar_info.name,
            ) from e

    def _directory(self, path: str) -> None:
        # Lintian insists on directory paths ending with "/"
        self._append(self._tar_info(path + "/", tarfile.DIRTYPE, DIRECTORY_MODE))

    def _add_parent_directories(self, path: str) -> None:
        for directory in _parent_directories(path):
            if directory not in self._added_directories:
                self._added_directories.add(directory)
                self._directory(directory)

    def file(self, path: str, data: bytes, mode: int) -> None:
        self._add_parent_directories(path)
        tar_info = self._tar_info(path, tarfile.REGTYPE, mode)
        tar_info.size = len(data)
        self._append(tar_info, data)

    def symlink(self, path: str, link_target: str) -> None:
        self._add_parent_directories(path)
        tar_info = self._tar_info(path, tarfile.SYMTYPE, SYMLINK_MODE)
        tar_info.linkname = link_target
        self._append(tar_info)

    def into_bytes(self) -> bytes:
        if not self._finished:
            self._tar.close()
            self._finished = True
        return self._buffer.getvalue()
