"""
Mapping of SQLite declared types to destination column types.

SQLite only records the type text written in the DDL. The destination type is
chosen with SQLite's own affinity rules, so ``VARCHAR(40)`` becomes
``Unicode(40)`` and ``BIGINT UNSIGNED`` becomes ``BigInteger``.
"""

import base64
import re
import logging
from decimal import Decimal
from typing import Any, Optional, Tuple

from dateutil import parser as date_parser
from sqlalchemy import types as sqltypes

logger = logging.getLogger(__name__)

DEFAULT_NUMERIC_PRECISION = 38
DEFAULT_NUMERIC_SCALE = 9

TRUE_VALUES = ("1", "true", "t", "yes", "y")
FALSE_VALUES = ("0", "false", "f", "no", "n")

# Foreign key actions SQL Server does not accept or that mean "no clause"
_IMPLICIT_FK_ACTIONS = ("", "NO ACTION", "RESTRICT")

_SIZE_PATTERN = re.compile(r"\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\)")


def _parse_size(declared: str) -> Tuple[Optional[int], Optional[int]]:
    """Extract ``(length_or_precision, scale)`` from a declared type."""
    match = _SIZE_PATTERN.search(declared)
    if not match:
        return None, None
    first = int(match.group(1))
    second = int(match.group(2)) if match.group(2) is not None else None
    return first, second


def resolve_type(declared_type: Optional[str]) -> sqltypes.TypeEngine:
    """
    Resolve a SQLite declared type to a SQLAlchemy type.

    Args:
        declared_type: Type text from ``PRAGMA table_info`` (may be empty)

    Returns:
        SQLAlchemy type instance for the destination column
    """
    declared = (declared_type or "").strip().upper()
    if not declared:
        return sqltypes.UnicodeText()

    # Integer affinity takes precedence, as in SQLite
    if "INT" in declared:
        return sqltypes.BigInteger()

    if "BOOL" in declared:
        return sqltypes.Boolean()

    if "CHAR" in declared or "CLOB" in declared or "TEXT" in declared:
        length, _ = _parse_size(declared)
        if length and "CHAR" in declared:
            return sqltypes.Unicode(length)
        return sqltypes.UnicodeText()

    if "BLOB" in declared:
        return sqltypes.LargeBinary()

    if "REAL" in declared or "FLOA" in declared or "DOUB" in declared:
        return sqltypes.Float()

    if "DATETIME" in declared or "TIMESTAMP" in declared:
        return sqltypes.DateTime()
    if "DATE" in declared:
        return sqltypes.Date()
    if "TIME" in declared:
        return sqltypes.Time()

    if "DEC" in declared or "NUMERIC" in declared:
        precision, scale = _parse_size(declared)
        if precision is None:
            return sqltypes.Numeric(DEFAULT_NUMERIC_PRECISION, DEFAULT_NUMERIC_SCALE)
        return sqltypes.Numeric(precision, scale or 0)

    logger.debug(f"Unrecognized declared type {declared_type!r}, using UnicodeText")
    return sqltypes.UnicodeText()


def coerce_value(value: Optional[str], declared_type: Optional[str]) -> Any:
    """
    Convert exported text back into a Python value for the column type.

    Args:
        value: Text read from the data file, or None for NULL
        declared_type: Declared type of the column

    Returns:
        Value suitable for binding to the destination column

    Raises:
        ValueError: If the text cannot be converted to the column type
    """
    if value is None:
        return None

    target = resolve_type(declared_type)

    if isinstance(target, sqltypes.Boolean):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ValueError(f"Not a boolean value: {value!r}")

    if isinstance(target, sqltypes.Integer):
        return int(value)

    # Float subclasses Numeric, so it must be checked first
    if isinstance(target, sqltypes.Float):
        return float(value)

    if isinstance(target, sqltypes.Numeric):
        return Decimal(value)

    if isinstance(target, sqltypes.DateTime):
        return date_parser.parse(value)

    if isinstance(target, sqltypes.Date):
        return date_parser.parse(value).date()

    if isinstance(target, sqltypes.Time):
        return date_parser.parse(value).time()

    if isinstance(target, sqltypes.LargeBinary):
        return base64.b64decode(value)

    return value


def normalize_fk_action(action: Optional[str]) -> Optional[str]:
    """Return the ON DELETE/ON UPDATE clause to emit, or None for the default."""
    if action is None:
        return None
    normalized = action.strip().upper()
    if normalized in _IMPLICIT_FK_ACTIONS:
        return None
    return normalized
