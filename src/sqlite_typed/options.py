import enum
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlite_typed.loaders import tuple_data_loader

__all__ = [
    'OpenFlags',
    'DEFAULT_FLAGS',
    'ConnectionOptions',
]

_PRAGMA_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')


class OpenFlags(enum.IntFlag):
    """SQLite open flags, same values as ``SQLITE_OPEN_*``.
    """
    READONLY = 0x00000001
    READWRITE = 0x00000002
    CREATE = 0x00000004
    URI = 0x00000040
    MEMORY = 0x00000080
    NOMUTEX = 0x00008000
    FULLMUTEX = 0x00010000
    SHAREDCACHE = 0x00020000
    PRIVATECACHE = 0x00040000
    NOFOLLOW = 0x01000000


DEFAULT_FLAGS = OpenFlags.READWRITE | OpenFlags.CREATE


@dataclass
class ConnectionOptions:
    """Options

    path: database file, ``':memory:'`` for a private in-memory database
    flags: ``OpenFlags`` bitmask, read-write-create by default
    timeout: seconds the engine waits on a locked database before BUSY
    cached_statements: size of the driver's compiled statement cache
    check_same_thread: keep the driver's same-thread guard
    verify: read the schema on open so a bad file fails at open time
    pragmas: ``PRAGMA name = value`` pairs applied after open
    data_loader: default result loader for ``select``
    """
    path: str = ':memory:'
    flags: int = DEFAULT_FLAGS
    timeout: float = 5.0
    cached_statements: int = 128
    check_same_thread: bool = True
    verify: bool = True
    pragmas: dict[str, Any] = field(default_factory=dict)
    data_loader: Callable[..., Any] | None = None

    def __post_init__(self):
        if isinstance(self.path, os.PathLike):
            self.path = os.fspath(self.path)
        if not isinstance(self.path, str):
            raise ValueError(f'path must be a string, got {type(self.path).__name__}')
        if isinstance(self.flags, bool) or not isinstance(self.flags, int):
            raise ValueError('flags must be an integer bitmask')
        self.flags = OpenFlags(self.flags)
        if self.timeout < 0:
            raise ValueError('timeout must be non-negative')
        if self.cached_statements < 0:
            raise ValueError('cached_statements must be non-negative')
        for name in self.pragmas:
            if not _PRAGMA_NAME.match(name):
                raise ValueError(f'invalid pragma name: {name!r}')
        if self.data_loader is None:
            self.data_loader = tuple_data_loader
