import gzip
import lzma
from typing import Callable, Optional


def _xz_compress(data: bytes, compression_level: int) -> bytes:
    return lzma.compress(
        data,
        format=lzma.FORMAT_XZ,
        check=lzma.CHECK_CRC64,
        preset=compression_level,
    )


def _gzip_compress(data: bytes, compression_level: int) -> bytes:
    # mtime=0 is the equivalent of "gzip -n"
    return gzip.compress(data, compresslevel=compression_level, mtime=0)


def _uncompressed(data: bytes, _unused: int) -> bytes:
    return data


class Compression:
    def __init__(
        self,
        default_compression_level: int,
        extension: str,
        compressor: Callable[[bytes, int], bytes],
    ) -> None:
        self.default_compression_level = default_compression_level
        self.extension = extension
        self.compressor = compressor

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.extension}>"

    def effective_compression_level(self, compression_level: Optional[int]) -> int:
        if compression_level is not None:
            return compression_level
        return self.default_compression_level

    def compress(self, data: bytes, compression_level: Optional[int] = None) -> bytes:
        return self.compressor(data, self.effective_compression_level(compression_level))

    def with_extension(self, filename: str) -> str:
        return filename + self.extension


COMPRESSIONS = {
    "xz": Compression(6, ".xz", _xz_compress),
    "gzip": Compression(9, ".gz", _gzip_compress),
    "none": Compression(0, "", _uncompressed),
}
