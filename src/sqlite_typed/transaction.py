"""
Transaction handling on top of the pass-through ``begin``/``commit``/``rollback``.
"""
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Self

from sqlite_typed.exceptions import MisuseError, ResultCode

if TYPE_CHECKING:
    from sqlite_typed.connection import Connection
    from sqlite_typed.statement import Statement

__all__ = ['Transaction']

logger = logging.getLogger(__name__)

_MODES = {'', 'deferred', 'immediate', 'exclusive'}


class Transaction:
    """Context manager for running multiple commands in a transaction.

    Commits when the block exits cleanly and rolls back when it raises.
    Nesting is left to the engine, which rejects a ``begin`` inside an open
    transaction.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from ...', args)
            tx.execute('update from ...', args)
    """

    def __init__(self, cn: 'Connection', mode: str = '') -> None:
        mode = mode.lower()
        if mode not in _MODES:
            raise MisuseError(f'Unknown transaction mode: {mode!r}', code=ResultCode.MISUSE)
        self.cn = cn
        self.connection = cn
        self.mode = mode

    def __enter__(self) -> Self:
        self.cn.execute(f'begin {self.mode}'.strip())
        logger.debug(f'Started transaction for connection {id(self.cn)}')
        return self

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if self.cn.closed or not self.cn.in_transaction:
            # The engine already ended it, e.g. a constraint with ON CONFLICT ROLLBACK.
            if exc_type is None:
                logger.warning('Transaction ended before the block finished')
            return
        if exc_type is not None:
            self.cn.execute('rollback')
            logger.warning('Rolling back the current transaction')
        else:
            self.cn.execute('commit')
            logger.debug(f'Committed transaction for connection {id(self.cn)}')

    def execute(self, sql: str, params: Any = ()) -> int:
        """Execute SQL within transaction context"""
        return self.cn.execute(sql, params)

    def collect(self, sql: str, params: Any, kinds: Any) -> Any:
        return self.cn.collect(sql, params, kinds)

    def for_each(self, sql: str, params: Any, handler: Callable[..., Any],
                 kinds: Any = None) -> int:
        return self.cn.for_each(sql, params, handler, kinds)

    def prepare(self, sql: str) -> 'Statement':
        return self.cn.prepare(sql)
