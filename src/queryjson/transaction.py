"""
Explicit transactions over a `ConnectionWrapper`.
"""
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from queryjson.options import CommandType
from queryjson.query import ResultSerializerMixin
from queryjson.row import Row

if TYPE_CHECKING:
    from queryjson.connection import ConnectionWrapper

logger = logging.getLogger(__name__)


class Transaction(ResultSerializerMixin):
    """Context manager for running multiple commands in a transaction.

    Commits when the block exits normally and rolls back when it raises.
    Nested transactions on the same connection are not supported. The
    transaction can be passed as `transaction=` to any query call on its
    connection, or used directly since it exposes the same query methods.

    Examples
        with Transaction(cn) as tx:
            tx.execute('delete from SimpleMonsters where Name = :name', {'name': 'Roz'})
            cn.query_to_json_string('select * from SimpleMonsters', transaction=tx)
    """

    def __init__(self, cn: 'ConnectionWrapper') -> None:
        self.cn = cn
        self.sa_transaction = None
        self.finished = False

    @property
    def default_encoding(self) -> str | None:
        return self.cn.default_encoding

    @property
    def is_active(self) -> bool:
        return self.sa_transaction is not None and self.sa_transaction.is_active

    def __enter__(self) -> 'Transaction':
        if self.finished:
            raise RuntimeError('Transaction has already finished')
        if self.cn.active_transaction is not None:
            raise RuntimeError('Nested transactions are not supported')
        sa_connection = self.cn.sa_connection
        if sa_connection.in_transaction():
            # close out the implicit transaction SQLAlchemy autobegins
            sa_connection.commit()
        self.sa_transaction = sa_connection.begin()
        self.cn.active_transaction = self
        logger.debug(f'Started transaction for connection {id(self.cn)}')
        return self

    def __exit__(self, exc_type: type | None, value: BaseException | None,
                 traceback: Any | None) -> None:
        try:
            if exc_type is not None:
                self.sa_transaction.rollback()
                logger.warning('Rolling back the current transaction')
            else:
                self.sa_transaction.commit()
                logger.debug(f'Committed transaction for connection {id(self.cn)}')
        finally:
            self.finished = True
            self.cn.active_transaction = None

    def query(self, sql: str, param: Any = None, transaction: Any = None,
              buffered: bool = True, timeout: float | None = None,
              command_type: CommandType | None = None) -> list[Row] | Iterator[Row]:
        return self.cn.query(sql, param, transaction or self, buffered, timeout, command_type)

    def query_first(self, sql: str, param: Any = None, transaction: Any = None,
                    timeout: float | None = None,
                    command_type: CommandType | None = None) -> Row:
        return self.cn.query_first(sql, param, transaction or self, timeout, command_type)

    def query_single(self, sql: str, param: Any = None, transaction: Any = None,
                     timeout: float | None = None,
                     command_type: CommandType | None = None) -> Row:
        return self.cn.query_single(sql, param, transaction or self, timeout, command_type)

    def execute(self, sql: str, param: Any = None, transaction: Any = None,
                timeout: float | None = None,
                command_type: CommandType | None = None) -> int:
        """Execute a statement within the transaction and return the affected row count."""
        return self.cn.execute(sql, param, transaction or self, timeout, command_type)
