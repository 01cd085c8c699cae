import os
from typing import List, Optional

from debassemble.ar_archive import DEB_BINARY_VERSION, DebArchive
from debassemble.assets import (
    Asset,
    DataAssetSource,
    PathAssetSource,
    built_binaries,
    compress_man_pages,
    debug_symbol_assets,
    resolve_assets,
)
from debassemble.compression import COMPRESSIONS, Compression
from debassemble.config import DependencyResolver, PackageConfig
from debassemble.control import (
    generate_control_archive,
    generate_scripts,
    installed_size_kib,
)
from debassemble.data import (
    generate_changelog_asset,
    generate_copyright_asset,
    generate_data_archive,
)
from debassemble.listener import Listener, NoOpListener
from debassemble.service_management import find_units
from debassemble.util import ensure_dir


def _doc_dir(config: PackageConfig) -> str:
    return f"usr/share/doc/{config.name}"


def discover_unit_assets(config: PackageConfig, listener: Listener) -> List[Asset]:
    systemd_units = config.systemd_units
    if systemd_units is None:
        return []
    unit_dir = systemd_units.unit_scripts or config.maintainer_scripts
    if unit_dir is None:
        return []
    units = find_units(unit_dir, config.name, systemd_units.unit_name)
    if not units and systemd_units.unit_name is not None:
        listener.warning(
            f"No unit files were found in {unit_dir} for the unit name {systemd_units.unit_name}"
        )
    unit_assets = []
    for src_path, recipe in sorted(units.items()):
        listener.info(f"Found systemd unit file {src_path} -> {recipe.install_path}")
        unit_assets.append(
            Asset.create(PathAssetSource(src_path), recipe.install_path, recipe.mode)
        )
    return unit_assets


def prepare_assets(config: PackageConfig, listener: Listener) -> List[Asset]:
    """Resolve the declared assets and add the ones derived from the config"""
    assets = resolve_assets(config.assets)
    assets.extend(discover_unit_assets(config, listener))

    if (
        config.copyright is not None
        or config.license is not None
        or config.license_file is not None
    ):
        assets.append(
            Asset.create(
                DataAssetSource(generate_copyright_asset(config)),
                f"{_doc_dir(config)}/copyright",
                0o644,
            )
        )
    changelog = generate_changelog_asset(config)
    if changelog is not None:
        assets.append(
            Asset.create(
                DataAssetSource(changelog),
                f"{_doc_dir(config)}/changelog.gz",
                0o644,
            )
        )
    if config.separate_debug_symbols:
        assets.extend(debug_symbol_assets(assets, listener))
    if config.compress_man_pages:
        assets = compress_man_pages(assets, listener)
    return assets


class PackageAssembler:
    """Turns a package description into a .deb file

    Every archive member shares the single `mtime` given here.
    """

    def __init__(
        self,
        config: PackageConfig,
        mtime: int,
        *,
        data_compression: Compression = COMPRESSIONS["xz"],
        control_compression: Compression = COMPRESSIONS["gzip"],
        data_compression_level: Optional[int] = None,
        control_compression_level: Optional[int] = None,
        listener: Optional[Listener] = None,
        dependency_resolver: Optional[DependencyResolver] = None,
    ) -> None:
        self.config = config
        self.mtime = mtime
        self.data_compression = data_compression
        self.control_compression = control_compression
        self.data_compression_level = data_compression_level
        self.control_compression_level = control_compression_level
        self.listener: Listener = listener if listener is not None else NoOpListener()
        self.dependency_resolver = dependency_resolver

    def _dependencies(self, assets: List[Asset]) -> str:
        binaries = [
            path
            for path in (a.source.path for a in built_binaries(assets))
            if path is not None
        ]
        return self.config.get_dependencies(
            binaries, self.dependency_resolver, self.listener
        )

    def assemble(self, output_path: Optional[str] = None) -> str:
        config = self.config
        listener = self.listener
        if output_path is None:
            output_path = config.output_path()

        assets = prepare_assets(config, listener)

        # Scripts must be final before the control archive is built
        scripts = generate_scripts(config, assets, listener)

        data_tar, asset_hashes = generate_data_archive(
            assets,
            self.mtime,
            config.preserve_symlinks,
            listener,
        )
        control_tar = generate_control_archive(
            config,
            self.mtime,
            asset_hashes,
            installed_size_kib(assets),
            self._dependencies(assets),
            scripts,
            listener,
        )

        listener.info("Compressing the control archive")
        control_member = self.control_compression.compress(
            control_tar, self.control_compression_level
        )
        listener.info("Compressing the data archive")
        data_member = self.data_compression.compress(
            data_tar, self.data_compression_level
        )

        ensure_dir(os.path.dirname(os.path.abspath(output_path)))
        with DebArchive(output_path) as deb:
            deb.add_data("debian-binary", self.mtime, DEB_BINARY_VERSION)
            deb.add_data(
                self.control_compression.with_extension("control.tar"),
                self.mtime,
                control_member,
            )
            deb.add_data(
                self.data_compression.with_extension("data.tar"),
                self.mtime,
                data_member,
            )
            generated = deb.finish()
        listener.info(f"Generated {generated}")
        return generated


def assemble_package(
    config: PackageConfig,
    mtime: int,
    *,
    data_compression: Compression = COMPRESSIONS["xz"],
    control_compression: Compression = COMPRESSIONS["gzip"],
    listener: Optional[Listener] = None,
    dependency_resolver: Optional[DependencyResolver] = None,
    output_path: Optional[str] = None,
) -> str:
    return PackageAssembler(
        config,
        mtime,
        data_compression=data_compression,
        control_compression=control_compression,
        listener=listener,
        dependency_resolver=dependency_resolver,
    ).assemble(output_path)
