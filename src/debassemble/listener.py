import dataclasses
from typing import List, Protocol

from debassemble.util import _info, _warn


class Listener(Protocol):
    """Receiver of human-readable progress and warning messages

    The assembly code only ever calls these two methods and never depends on
    what an implementation does with the message.
    """

    def info(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...


class NoOpListener:
    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass


class LoggingListener:
    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def info(self, msg: str) -> None:
        if self.verbose:
            _info(msg)

    def warning(self, msg: str) -> None:
        _warn(msg)


@dataclasses.dataclass(slots=True)
class CollectingListener:
    infos: List[str] = dataclasses.field(default_factory=list)
    warnings: List[str] = dataclasses.field(default_factory=list)

    def info(self, msg: str) -> None:
        self.infos.append(msg)

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)
