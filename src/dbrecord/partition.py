"""
Range partitioning of a source query.

A partitioned read runs the bounding query once to get the minimum and
maximum of the split column, cuts that range into contiguous splits and
substitutes one split predicate for the `$CONDITIONS` token of the import
query per unit of work.

    SELECT id, name FROM users WHERE $CONDITIONS
    SELECT MIN(id), MAX(id) FROM users

Every split is half-open except the last, whose upper bound is inclusive,
so the splits cover the bounds exactly once. A separate IS NULL split picks
up rows whose split column is null.
"""
import decimal
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

__all__ = [
    'CONDITIONS',
    'Split',
    'split_ranges',
    'bind_conditions',
    'fetch_bounds',
]

CONDITIONS = '$CONDITIONS'


@dataclass(frozen=True)
class Split:
    """One contiguous range of the split column.

    `lower` is inclusive. `upper` is exclusive unless `inclusive_upper`.
    A null split selects the rows where the split column IS NULL.
    """
    lower: Any = None
    upper: Any = None
    inclusive_upper: bool = False
    is_null: bool = False

    @classmethod
    def null(cls) -> 'Split':
        return cls(is_null=True)

    def predicate(self, split_by: str, placeholder: str = '?') -> tuple[str, tuple]:
        """SQL predicate and parameters selecting the rows of this split.

        >>> Split(1, 5).predicate('id')
        ('id >= ? AND id < ?', (1, 5))
        >>> Split(5, 9, inclusive_upper=True).predicate('id', '%s')
        ('id >= %s AND id <= %s', (5, 9))
        >>> Split.null().predicate('id')
        ('id IS NULL', ())
        """
        if self.is_null:
            return f'{split_by} IS NULL', ()
        upper_op = '<=' if self.inclusive_upper else '<'
        return (f'{split_by} >= {placeholder} AND {split_by} {upper_op} {placeholder}',
                (self.lower, self.upper))


def split_ranges(lower: Any, upper: Any, num_splits: int,
                 include_nulls: bool = False) -> list[Split]:
    """Cut [lower, upper] into at most num_splits contiguous splits.

    Integer bounds never produce empty splits: the number of splits is
    capped by the width of the range.

    Args:
        lower: Minimum of the split column, None when the table is empty or
            the column is all null
        upper: Maximum of the split column
        num_splits: Requested number of splits, at least 1
        include_nulls: Append an IS NULL split

    Returns
        List of Split in ascending order
    """
    if num_splits < 1:
        raise ValueError(f'num_splits must be at least 1, got {num_splits}')

    if lower is None or upper is None:
        logger.debug('Split bounds are null, reading the null split only')
        return [Split.null()]

    if isinstance(lower, bool) or isinstance(upper, bool):
        raise TypeError('Cannot split on a boolean column')
    if not isinstance(lower, int | float | decimal.Decimal) or not isinstance(upper, int | float | decimal.Decimal):
        raise TypeError(f'Cannot split on bounds of type {type(lower).__name__}')
    if lower > upper:
        raise ValueError(f'Lower bound {lower} is greater than upper bound {upper}')

    span = upper - lower
    if isinstance(lower, int) and isinstance(upper, int):
        count = max(1, min(num_splits, span))
        bounds = [lower + span * i // count for i in range(count)] + [upper]
    else:
        count = num_splits if span else 1
        bounds = [lower + span * i / count for i in range(count)] + [upper]

    splits = [Split(bounds[i], bounds[i + 1], inclusive_upper=(i == count - 1))
              for i in range(count)]
    if include_nulls:
        splits.append(Split.null())

    logger.debug(f'Split [{lower}, {upper}] into {len(splits)} splits')
    return splits


def bind_conditions(query: str, split_by: str | None = None, split: Split | None = None,
                    placeholder: str = '?') -> tuple[str, tuple]:
    """Substitute the split predicate for the conditions token.

    Without a split the token is replaced by an always-true predicate.

    Raises
        ValueError: when the query has no conditions token
    """
    if CONDITIONS not in query:
        raise ValueError(f'Import query must contain {CONDITIONS} to be split: {query}')
    if split is None:
        return query.replace(CONDITIONS, '1 = 1'), ()
    if not split_by:
        raise ValueError('A split column is required to bind split conditions')
    predicate, params = split.predicate(split_by, placeholder)
    return query.replace(CONDITIONS, f'({predicate})'), params * query.count(CONDITIONS)


def fetch_bounds(connection: Any, bounding_query: str) -> tuple[Any, Any]:
    """Run the bounding query and return its (lower, upper) row.
    """
    cursor = connection.cursor()
    try:
        cursor.execute(bounding_query)
        row = cursor.fetchone()
    finally:
        cursor.close()
    if row is None or len(row) < 2:
        raise ValueError(f'Bounding query must return one row with two columns: {bounding_query}')
    logger.debug(f'Fetched split bounds {row[0]!r}, {row[1]!r}')
    return row[0], row[1]
