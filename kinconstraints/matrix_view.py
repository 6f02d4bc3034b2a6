"""Views on disjoint subsets of rows and columns of vectors and matrices.

Subsets of indices are given as segments ``(start, length)``. A view over a
single contiguous segment is a plain numpy slice and aliases the underlying
storage. Any other subset goes through index arrays: reading gathers a copy
and writing scatters the values back into the underlying storage.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

Segment = Tuple[int, int]
Segments = List[Segment]
IndexSet = Union[Sequence[Segment], slice, None]


def cardinal(segments: Iterable[Segment]) -> int:
    """Total number of indices covered by the segments."""
    return sum(length for _, length in segments)


def shrink(segments: Iterable[Segment]) -> Segments:
    """Sort segments, drop empty ones and merge those that touch or overlap."""
    result: Segments = []
    for start, length in sorted(s for s in segments if s[1] > 0):
        if result and start <= result[-1][0] + result[-1][1]:
            last_start, last_length = result[-1]
            end = max(last_start + last_length, start + length)
            result[-1] = (last_start, end - last_start)
        else:
            result.append((start, length))
    return result


def segment_indices(segments: Iterable[Segment]) -> np.ndarray:
    """Flat array of the indices covered by the segments, in segment order."""
    ranges = [np.arange(start, start + length) for start, length in segments]
    if not ranges:
        return np.zeros(0, dtype=int)
    return np.concatenate(ranges).astype(int)


def segments_from_mask(mask: Sequence[bool]) -> Segments:
    """Segments covering the true entries of a boolean mask."""
    return shrink((i, 1) for i, flag in enumerate(mask) if flag)


def segments_from_indices(indices: Iterable[int]) -> Segments:
    return shrink((int(i), 1) for i in indices)


def complement(size: int, segments: Iterable[Segment]) -> Segments:
    """Segments covering [0, size) minus the given segments."""
    covered = np.zeros(size, dtype=bool)
    for start, length in segments:
        covered[start:start + length] = True
    return segments_from_mask(~covered)


def overlaps(a: Iterable[Segment], b: Iterable[Segment]) -> bool:
    """Whether two sets of segments share at least one index."""
    return bool(np.intersect1d(segment_indices(a), segment_indices(b)).size)


def _as_index(index_set: IndexSet):
    if index_set is None:
        return slice(None)
    if isinstance(index_set, slice):
        return index_set
    segments = shrink(index_set)
    if len(segments) == 1:
        start, length = segments[0]
        return slice(start, start + length)
    # Keep the caller's order: it defines the row order of the view
    return segment_indices(index_set)


class IndexedView:
    """Borrowed view on selected rows (and columns) of an array.

    Example:
        >>> J = np.zeros((6, 10))
        >>> view = IndexedView(J, rows=[(0, 3)], cols=[(2, 2), (7, 3)])
        >>> view.write(np.ones((3, 5)))
        >>> view.shape
        (3, 5)
    """

    def __init__(self, array: np.ndarray, rows: IndexSet = None, cols: IndexSet = None):
        self.array = array
        self._rows = _as_index(rows)
        if array.ndim == 1:
            assert cols is None, "Column indices given for a vector"
            self._cols = None
        else:
            self._cols = _as_index(cols)

    @property
    def is_contiguous(self) -> bool:
        """True when reading returns a view sharing memory with the array."""
        return isinstance(self._rows, slice) and (
            self._cols is None or isinstance(self._cols, slice)
        )

    def _key(self):
        if self._cols is None:
            return self._rows
        if isinstance(self._rows, slice) or isinstance(self._cols, slice):
            return (self._rows, self._cols)
        return np.ix_(self._rows, self._cols)

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.read().shape

    def read(self) -> np.ndarray:
        """Selected entries; a view when contiguous, a copy otherwise."""
        return self.array[self._key()]

    def write(self, values: np.ndarray) -> None:
        """Assign the selected entries of the underlying array."""
        self.array[self._key()] = values

    def __array__(self, dtype: Optional[np.dtype] = None, copy: Optional[bool] = None) -> np.ndarray:
        values = self.read()
        return values if dtype is None else values.astype(dtype)

    def __repr__(self) -> str:
        return f"IndexedView(shape={self.shape}, contiguous={self.is_contiguous})"
