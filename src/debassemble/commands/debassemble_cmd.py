#!/usr/bin/python3 -B
import argparse
import os
import sys
import textwrap
from typing import Optional, List

from debassemble.assemble import PackageAssembler
from debassemble.compression import COMPRESSIONS, Compression
from debassemble.config import load_package_config
from debassemble.exceptions import DebassembleRuntimeError
from debassemble.listener import LoggingListener
from debassemble.util import (
    _error,
    _info,
    ColorizedArgumentParser,
    program_name,
    resolve_source_date_epoch,
    setup_logging,
)
from debassemble.version import __version__


def _normalize_compression_args(parsed_args: argparse.Namespace) -> argparse.Namespace:
    if (
        parsed_args.compression_level == 0
        and parsed_args.compression_algorithm == "gzip"
    ):
        _info(
            "Mapping compression algorithm to none for compatibility with dpkg-deb (due to -Zgzip -z0)"
        )
        setattr(parsed_args, "compression_algorithm", "none")
    return parsed_args


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    try:
        compression_level_default = int(os.environ["DPKG_DEB_COMPRESSOR_LEVEL"])
    except (KeyError, ValueError):
        compression_level_default = None

    compression_type = os.environ.get("DPKG_DEB_COMPRESSOR_TYPE", "xz")
    if compression_type not in COMPRESSIONS:
        compression_type = "xz"

    description = textwrap.dedent(
        """\
    Assemble a Debian binary package (.deb) from already built files

    The package is described by a YAML file listing the package metadata and the
    files (assets) to ship.  Maintainer scripts for any systemd units in the
    package are generated the same way dh_installsystemd would do it.
    """
    )

    parser = ColorizedArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        prog=program_name(),
    )
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "package_description",
        metavar="DESCRIPTION",
        help="The YAML file describing the package",
    )
    parser.add_argument(
        "-o",
        "--output",
        dest="output",
        action="store",
        default=None,
        help="Path where the package should be placed.  If it is directory,"
        " the base name will be determined from the package metadata",
    )
    parser.add_argument(
        "--source-date-epoch",
        dest="source_date_epoch",
        action="store",
        type=int,
        default=None,
        help="Source date epoch (can also be given via the SOURCE_DATE_EPOCH environ variable",
    )
    parser.add_argument(
        "-Z",
        dest="compression_algorithm",
        choices=COMPRESSIONS,
        default=compression_type,
        help="The compression algorithm to be used for the data.tar",
    )
    parser.add_argument(
        "-z",
        dest="compression_level",
        metavar="{0-9}",
        choices=[0, 1, 2, 3, 4, 5, 6, 7, 8, 9],
        default=compression_level_default,
        type=int,
        help="The compression level to be used",
    )
    parser.add_argument(
        "--uniform-compression",
        dest="uniform_compression",
        action="store_true",
        default=False,
        help="Use the same compression for the control.tar as for the data.tar."
        " The default is to compress the control.tar with gzip.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        default=False,
        help="Report what is being added to the package",
    )
    parser.add_argument(
        "-d",
        "--debug",
        dest="debug_mode",
        action="store_true",
        default=False,
        help="Enable debug logging and raw stack traces on errors",
    )

    parsed_args = parser.parse_args(argv)
    parsed_args = _normalize_compression_args(parsed_args)

    return parsed_args


def main(argv: Optional[List[str]] = None) -> None:
    setup_logging(reconfigure_logging=True)
    parsed_args = parse_args(argv)
    mtime = resolve_source_date_epoch(parsed_args.source_date_epoch)

    data_compression: Compression = COMPRESSIONS[parsed_args.compression_algorithm]
    if parsed_args.uniform_compression:
        ctrl_compression = data_compression
        ctrl_compression_level = parsed_args.compression_level
    else:
        ctrl_compression = COMPRESSIONS["gzip"]
        ctrl_compression_level = None

    try:
        config = load_package_config(parsed_args.package_description)
        output = parsed_args.output
        if output is not None:
            config.output = os.path.abspath(output) + ("/" if output.endswith("/") else "")
        assembler = PackageAssembler(
            config,
            mtime,
            data_compression=data_compression,
            control_compression=ctrl_compression,
            data_compression_level=parsed_args.compression_level,
            control_compression_level=ctrl_compression_level,
            listener=LoggingListener(verbose=parsed_args.verbose),
        )
        output_path = assembler.assemble()
    except DebassembleRuntimeError as e:
        if parsed_args.debug_mode:
            raise
        _error(e.message)
    print(output_path)


if __name__ == "__main__":
    main(sys.argv[1:])
