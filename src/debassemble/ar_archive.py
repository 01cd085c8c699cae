import errno
import os
import tempfile
from typing import BinaryIO, Optional

from debassemble.exceptions import ArchiveFormatError, DebassembleFSError
from debassemble.util import assume_not_none

# AR header / start of a deb file for reference
# 00000000  21 3c 61 72 63 68 3e 0a  64 65 62 69 61 6e 2d 62  |!<arch>.debian-b|
# 00000010  69 6e 61 72 79 20 20 20  31 36 36 38 39 37 33 36  |inary   16689736|
# 00000020  39 35 20 20 30 20 20 20  20 20 30 20 20 20 20 20  |95  0     0     |
# 00000030  31 30 30 36 34 34 20 20  34 20 20 20 20 20 20 20  |100644  4       |
# 00000040  20 20 60 0a 32 2e 30 0a  63 6f 6e 74 72 6f 6c 2e  |  `.2.0.control.|

AR_MAGIC = b"!<arch>\n"
AR_HEADER_LEN = 60
AR_NAME_LEN = 16
DEB_BINARY_VERSION = b"2.0\n"


def _os_error_message(output_filename: str, e: OSError) -> str:
    if e.errno == errno.ENOSPC:
        return f"Unable to write {output_filename}.  The file system device reported disk full: {str(e)}"
    if e.errno == errno.EIO:
        return f"Unable to write {output_filename}.  The file system reported a generic I/O error: {str(e)}"
    if e.errno == errno.EROFS:
        return f"Unable to write {output_filename}.  The file system is read-only: {str(e)}"
    return f"Unable to write {output_filename}: {str(e)}"


def ar_header(name: str, mtime: int, mode: int, member_len: int) -> bytes:
    try:
        encoded_name = name.encode("ascii")
    except UnicodeEncodeError as e:
        raise ArchiveFormatError(
            f"The ar member name {name!r} must be ASCII", name
        ) from e
    if len(encoded_name) > AR_NAME_LEN:
        raise ArchiveFormatError(
            f"The ar member name {name} is longer than {AR_NAME_LEN} characters",
            name,
        )
    header = b"%-16s%-12d0     0     %-8o%-10d\x60\n" % (
        encoded_name,
        mtime,
        0o100000 | mode,
        member_len,
    )
    assert len(header) == AR_HEADER_LEN
    return header


class DebArchive:
    """Writer for the outer ar container of a .deb

    The members are written to a temporary file next to the output path and
    only renamed into place by `finish()`.  The caller decides the member
    order, which for a .deb must be `debian-binary`, then the control archive
    and finally the data archive.
    """

    def __init__(self, out_path: str) -> None:
        self.out_path = out_path
        self._fd: Optional[BinaryIO] = None
        self._tmp_path: Optional[str] = None
        out_dir = os.path.dirname(os.path.abspath(out_path))
        try:
            fd, self._tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(out_path)}.", suffix=".tmp", dir=out_dir
            )
            self._fd = os.fdopen(fd, "wb")
            self._fd.write(AR_MAGIC)
        except OSError as e:
            self.abort()
            raise DebassembleFSError(_os_error_message(out_path, e), out_path) from e

    def __enter__(self) -> "DebArchive":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.abort()

    def _write(self, data: bytes) -> None:
        if self._fd is None:
            raise RuntimeError("The archive has already been closed")
        try:
            self._fd.write(data)
        except OSError as e:
            self.abort()
            raise DebassembleFSError(
                _os_error_message(self.out_path, e), self.out_path
            ) from e

    def add_data(self, name: str, mtime: int, data: bytes, mode: int = 0o644) -> None:
        self._write(ar_header(name, mtime, mode, len(data)))
        self._write(data)
        if len(data) % 2 != 0:
            # ar aligns members to even offsets
            self._write(b"\n")

    def add_path(self, path: str) -> None:
        try:
            st = os.stat(path)
            with open(path, "rb") as fd:
                data = fd.read()
        except OSError as e:
            self.abort()
            raise DebassembleFSError(
                f"Unable to read {path} to add to {self.out_path}: {e.strerror}",
                path,
            ) from e
        self.add_data(
            os.path.basename(path),
            int(st.st_mtime),
            data,
            mode=st.st_mode & 0o7777,
        )

    def abort(self) -> None:
        if self._fd is not None:
            self._fd.close()
            self._fd = None
        if self._tmp_path is not None:
            try:
                os.unlink(self._tmp_path)
            except FileNotFoundError:
                pass
            self._tmp_path = None

    def finish(self) -> str:
        fd = assume_not_none(self._fd)
        tmp_path = assume_not_none(self._tmp_path)
        try:
            fd.close()
            self._fd = None
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.out_path)
        except OSError as e:
            self.abort()
            raise DebassembleFSError(
                _os_error_message(self.out_path, e), self.out_path
            ) from e
        self._tmp_path = None
        return self.out_path
