"""
Cache Key Module
Derives stable screenshot cache keys from request query parameters.
"""

from typing import Dict, List, Mapping, Tuple, Union
import unicodedata

QueryValue = Union[str, List[str], Tuple[str, ...]]
QueryMapping = Mapping[str, QueryValue]

# Primary order of character classes: whitespace, punctuation, symbols, digits, letters
_CLASS_ORDER = {'Z': 0, 'P': 1, 'S': 2, 'N': 3}

def _char_weight(char: str) -> Tuple[int, str]:
    return (_CLASS_ORDER.get(unicodedata.category(char)[0], 4), char.casefold())

def _collation_key(name: str) -> Tuple[Tuple[Tuple[int, str], ...], str]:
    # Case-insensitive first, then lowercase before uppercase on ties
    return (tuple(_char_weight(char) for char in name), name.swapcase())

def _format_value(value: QueryValue) -> str:
    if isinstance(value, (list, tuple)):
        return ','.join(value)
    return value

def derive_key(query: QueryMapping) -> str:
    """
    Turn a query mapping into a cache key.

    Entries are sorted by parameter name and rendered as ``key:value``,
    sequence values comma-joined in their original order, all joined with
    ``;``. Values are not normalized, so ``tz=UTC`` and ``tz=Etc/UTC`` get
    different keys.

    Example:
        >>> derive_key({'year': '2025', 'tz': 'Etc/UTC'})
        'tz:Etc/UTC;year:2025'
    """
    pairs = sorted(query.items(), key=lambda item: _collation_key(item[0]))
    return ';'.join(f'{key}:{_format_value(value)}' for key, value in pairs)

def query_from_multidict(args) -> Dict[str, QueryValue]:
    """
    Convert a werkzeug MultiDict into a query mapping.

    Keys seen once map to a string, repeated keys map to a list of strings.
    """
    query: Dict[str, QueryValue] = {}
    for key, values in args.lists():
        query[key] = values[0] if len(values) == 1 else list(values)
    return query
