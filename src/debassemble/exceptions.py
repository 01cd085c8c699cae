from typing import cast, Optional


class DebassembleRuntimeError(RuntimeError):
    @property
    def message(self) -> str:
        return cast("str", self.args[0])


class DebassembleFSError(DebassembleRuntimeError):
    @property
    def path(self) -> Optional[str]:
        if len(self.args) < 2:
            return None
        return cast("str", self.args[1])


class ManifestError(DebassembleRuntimeError):
    pass


class AssetError(DebassembleRuntimeError):
    pass


class AssetPatternError(AssetError):
    @property
    def pattern(self) -> str:
        return cast("str", self.args[1])


class AssetNotFoundError(AssetError):
    @property
    def pattern(self) -> str:
        return cast("str", self.args[1])


class ArchiveFormatError(DebassembleRuntimeError):
    @property
    def member_path(self) -> str:
        return cast("str", self.args[1])


class AutoscriptError(DebassembleRuntimeError):
    pass


class UnknownAutoscriptError(AutoscriptError, LookupError):
    @property
    def template_name(self) -> str:
        return cast("str", self.args[1])


class AutoscriptSubstitutionError(AutoscriptError):
    @property
    def template_name(self) -> str:
        return cast("str", self.args[1])


class MissingDebhelperTokenError(AutoscriptError):
    @property
    def script_path(self) -> str:
        return cast("str", self.args[1])


class SystemdUnitError(DebassembleRuntimeError):
    @property
    def unit_name(self) -> str:
        return cast("str", self.args[1])
