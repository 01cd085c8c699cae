import tarfile

import pytest

from debassemble.exceptions import ArchiveFormatError
from debassemble.tar_archive import TarArchive
from tutil import read_tar


def test_parent_directories_are_emitted_before_files(mtime):
    archive = TarArchive(mtime)
    archive.file("usr/bin/app", b"binary", 0o755)
    members = read_tar(archive.into_bytes())

    assert [m.name for m in members] == ["usr", "usr/bin", "usr/bin/app"]
    usr, usr_bin, app = members
    for directory in (usr, usr_bin):
        assert directory.isdir()
        assert directory.mode == 0o755
        assert directory.size == 0
    assert app.isfile()
    assert app.mode == 0o755
    assert app.size == len(b"binary")


def test_directories_have_trailing_slash_in_raw_header(mtime):
    archive = TarArchive(mtime)
    archive.file("usr/bin/app", b"x", 0o755)
    raw = archive.into_bytes()
    # The name field of the first header block
    assert raw[0:100].rstrip(b"\0") == b"usr/"


def test_shared_parent_directory_is_emitted_once(mtime):
    archive = TarArchive(mtime)
    archive.file("usr/share/doc/app/README", b"readme", 0o644)
    archive.file("usr/share/doc/app/copyright", b"copyright", 0o644)
    archive.file("usr/share/man/man1/app.1.gz", b"man", 0o644)
    names = [m.name for m in read_tar(archive.into_bytes())]

    assert names == [
        "usr",
        "usr/share",
        "usr/share/doc",
        "usr/share/doc/app",
        "usr/share/doc/app/README",
        "usr/share/doc/app/copyright",
        "usr/share/man",
        "usr/share/man/man1",
        "usr/share/man/man1/app.1.gz",
    ]
    assert len(names) == len(set(names))


def test_every_ancestor_precedes_its_children(mtime):
    paths = [
        "etc/app/app.conf",
        "lib/systemd/system/app.service",
        "usr/bin/app",
        "etc/default/app",
        "usr/lib/debug/usr/bin/app.debug",
    ]
    archive = TarArchive(mtime)
    for path in paths:
        archive.file(path, path.encode("utf-8"), 0o644)
    names = [m.name for m in read_tar(archive.into_bytes())]

    seen = set()
    for name in names:
        parent = name.rsplit("/", 1)[0] if "/" in name else None
        if parent is not None:
            assert parent in seen, f"{parent} was not emitted before {name}"
        seen.add(name)


def test_entries_share_the_archive_mtime(mtime):
    archive = TarArchive(mtime)
    archive.file("usr/bin/app", b"x", 0o755)
    archive.symlink("usr/bin/app-link", "app")
    for member in read_tar(archive.into_bytes()):
        assert member.mtime == mtime
        assert member.uid == 0
        assert member.gid == 0
        assert member.uname == "root"
        assert member.gname == "root"


def test_symlink_entry(mtime):
    archive = TarArchive(mtime)
    archive.symlink("usr/lib/libfoo.so", "libfoo.so.1")
    members = read_tar(archive.into_bytes())

    assert [m.name for m in members] == ["usr", "usr/lib", "usr/lib/libfoo.so"]
    link = members[-1]
    assert link.issym()
    assert link.linkname == "libfoo.so.1"
    assert link.mode == 0o777
    assert link.size == 0


def test_root_level_control_members_have_no_directory_entries(mtime):
    archive = TarArchive(mtime)
    archive.file("./md5sums", b"", 0o644)
    archive.file("./control", b"Package: foo\n", 0o644)
    members = read_tar(archive.into_bytes())

    assert [m.name for m in members] == ["./md5sums", "./control"]


def test_gnu_format_long_names(mtime):
    long_path = "usr/share/" + "/".join(["very-long-directory-name"] * 6) + "/file"
    archive = TarArchive(mtime)
    archive.file(long_path, b"content", 0o644)
    members = read_tar(archive.into_bytes())
    assert members[-1].name == long_path


def test_unencodable_path_is_a_format_error(mtime):
    archive = TarArchive(mtime)
    with pytest.raises(ArchiveFormatError) as e_info:
        archive.file("usr/share/\udcff", b"content", 0o644)
    assert e_info.value.member_path == "usr/share/\udcff"


def test_into_bytes_is_a_valid_tar_stream(mtime):
    archive = TarArchive(mtime)
    archive.file("usr/bin/app", b"x" * 1000, 0o755)
    data = archive.into_bytes()
    assert len(data) % tarfile.RECORDSIZE == 0
    assert data == archive.into_bytes()
