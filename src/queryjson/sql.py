"""
SQL text and parameter preparation.

Queries are executed as SQLAlchemy `text()` constructs with named binds.
Two placeholder spellings are accepted: `:name` (native) and `@name`,
which is rewritten to `:name`. The rewrite is done with a single-pass
tokenizer so that string literals, dollar-quoted bodies, quoted
identifiers and comments are never touched:

    SQL → Tokenize → Rewrite @name / escape colons → text() + bindparams

Main entry points:
- `prepare_statement(sql, param, command_type, strategy)` - statement + bind dict
- `bind_params(param)` - normalize a parameter bag to a dict
- `standardize_placeholders(sql)` - `@name` → `:name`
"""
import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from queryjson.options import CommandType

if TYPE_CHECKING:
    from queryjson.strategy import DatabaseStrategy


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    DOLLAR_QUOTED = auto()      # $$body$$ or $tag$body$tag$
    QUOTED_IDENT = auto()       # "name" or [name]
    COMMENT = auto()
    CAST = auto()               # ::
    NAMED_PH = auto()           # :name or @name


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


_TOKENIZE = re.compile(r"""
    (?P<dollar>(?<!\w)\$(?P<tag>(?:[A-Za-z_]\w*)?)\$.*?\$(?P=tag)\$)
    |(?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*"|\[[^\]]*\])
    |(?P<comment>--[^\n]*|/\*.*?\*/)
    |(?P<cast>::)
    |(?P<sysvar>@@\w+)
    |(?P<named>(?<![\w:@])[:@](?P<pname>[A-Za-z_]\w*))
""", re.VERBOSE | re.DOTALL)

# Colon sequences SQLAlchemy would treat as a bind inside text()
_BINDLIKE_COLON = re.compile(r'(?<![:\w\\]):(?=\w)')

_PARAM_NAME = re.compile(r'^[A-Za-z_]\w*$')

_EXPANDING_TYPES = (list, tuple, set, frozenset)

_QUOTED_TOKENS = {
    TokenType.STRING_LITERAL,
    TokenType.DOLLAR_QUOTED,
    TokenType.QUOTED_IDENT,
    TokenType.COMMENT,
}


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('dollar'):
            ttype = TokenType.DOLLAR_QUOTED
        elif match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('ident'):
            ttype = TokenType.QUOTED_IDENT
        elif match.group('comment'):
            ttype = TokenType.COMMENT
        elif match.group('cast'):
            ttype = TokenType.CAST
        elif match.group('named'):
            ttype = TokenType.NAMED_PH
        else:
            ttype = TokenType.SQL_TEXT

        tokens.append(Token(ttype, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def standardize_placeholders(sql: str) -> str:
    """Rewrite `@name` placeholders to `:name` and protect literal colons.

    Colons inside string literals, dollar-quoted bodies, quoted identifiers
    and comments are escaped so `text()` does not mistake them for binds.
    """
    if not sql:
        return sql

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.NAMED_PH:
            result.append(':' + token.text[1:])
        elif token.type in _QUOTED_TOKENS:
            result.append(_BINDLIKE_COLON.sub(r'\\:', token.text))
        else:
            result.append(token.text)
    return ''.join(result)


def placeholder_names(sql: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    seen: dict[str, None] = {}
    for token in tokenize_sql(sql or ''):
        if token.type == TokenType.NAMED_PH:
            seen.setdefault(token.text[1:], None)
    return list(seen)


def _strip_prefix(name: str) -> str:
    return name[1:] if name[:1] in {'@', ':'} else name


def bind_params(param: Any) -> dict[str, Any]:
    """Normalize a named-parameter bag into a dict.

    Accepts None, a mapping, a dataclass instance, a namedtuple, or any
    object with instance attributes. Leading `@` or `:` on names is removed.

    >>> bind_params({'@Name': 'Flint'})
    {'Name': 'Flint'}
    """
    if param is None:
        return {}
    if isinstance(param, Mapping):
        items = param.items()
    elif dataclasses.is_dataclass(param) and not isinstance(param, type):
        items = ((f.name, getattr(param, f.name)) for f in dataclasses.fields(param))
    elif isinstance(param, tuple) and hasattr(param, '_asdict'):
        items = param._asdict().items()
    elif hasattr(param, '__dict__'):
        items = ((k, v) for k, v in vars(param).items() if not k.startswith('_'))
    else:
        raise TypeError(f'Unsupported parameter bag: {type(param).__name__}')

    params = {}
    for name, value in items:
        name = _strip_prefix(str(name))
        if not _PARAM_NAME.match(name):
            raise ValueError(f'Invalid parameter name: {name!r}')
        params[name] = value
    return params


def prepare_statement(sql: str, param: Any, command_type: CommandType | None,
                      strategy: 'DatabaseStrategy',
                      returns_rows: bool = True) -> tuple[sa.TextClause, dict[str, Any]]:
    """Build an executable statement and its bind values.

    Sequence values (list, tuple, set) become expanding binds, so
    `WHERE x IN :values` renders one placeholder per element.

    Raises
        QueryError: If a stored procedure is requested on a dialect without them
        ValueError: If a routine or parameter name is invalid
    """
    params = bind_params(param)

    if (command_type or CommandType.TEXT) is CommandType.STORED_PROCEDURE:
        statement_sql = strategy.build_procedure_sql(sql, list(params), returns_rows)
    else:
        statement_sql = standardize_placeholders(sql)

    statement = sa.text(statement_sql)
    if command_type is CommandType.STORED_PROCEDURE:
        return statement, params

    params = {k: list(v) if isinstance(v, (set, frozenset)) else v
              for k, v in params.items()}
    used = set(placeholder_names(statement_sql))
    expanding = [sa.bindparam(k, expanding=True) for k, v in params.items()
                 if k in used and isinstance(v, _EXPANDING_TYPES)]
    if expanding:
        statement = statement.bindparams(*expanding)
    return statement, params


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
