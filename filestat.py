#!/usr/bin/env python3
"""Streaming statistics over one large file of space-separated numbers.

Every statistic is a full pass (or several) of ``scan`` over the file; nothing
is cached between calls and no pass holds more than a bounded buffer.
"""
import math, re, struct
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

MB = 1024 * 1024

CHUNK_SIZE = 8 * MB          # read block for one scan
MEDIAN_TOLERANCE = 1e-3      # absolute width at which bisection stops
DEFAULT_TAIL_SIZE = 10_000
SHOWN_TAIL = 10
MAX_TOKEN = 64 * 1024       # no float literal comes near this

# decimal / exponent literal, or inf / infinity / nan; no underscores or inner blanks
_FLOAT_RE = re.compile(rb"[+-]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)", re.IGNORECASE)
_F64 = struct.Struct("<d")
_I64 = struct.Struct("<q")


class FileStatError(Exception):
    pass


class ParseError(FileStatError, ValueError):
    """A token that is not a float literal. Aborts the whole scan."""
    def __init__(self, token: bytes, index: int, offset: int):
        self.token = token
        self.index = index
        self.offset = offset
        super().__init__(f"token #{index} at byte {offset} is not a number: {token[:40]!r}")


class EmptyStreamError(FileStatError):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} needs at least one value, file is empty")


def total_order_key(x: float) -> int:
    """Map a float to an int that sorts in IEEE-754 totalOrder.

    -nan < -inf < ... < -0.0 < 0.0 < ... < inf < nan, so NaN and signed zeros
    get a definite place instead of poisoning comparisons.
    """
    (bits,) = _I64.unpack(_F64.pack(x))
    return bits ^ 0x7FFFFFFFFFFFFFFF if bits < 0 else bits


def _parse(token: bytes, index: int, offset: int) -> float:
    if _FLOAT_RE.fullmatch(token) is None:
        raise ParseError(token, index, offset)
    return float(token)


def iter_values(path: str, chunk_size: int = CHUNK_SIZE,
                progress: Optional[Callable[[int], None]] = None):
    """Yield every number in ``path`` in file order.

    Tokens are split on single spaces (0x20). An empty token between two
    spaces is a ParseError; one trailing space, or a line terminator after
    the last token, is accepted. A token longer than MAX_TOKEN bytes is a
    ParseError. ``progress`` gets the cumulative byte count after each block.
    """
    index = 0
    offset = 0
    pending = b""
    bytes_read = 0
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            bytes_read += len(chunk)
            tokens = (pending + chunk).split(b" ")
            pending = tokens.pop()  # may continue in the next block
            for tok in tokens:
                yield _parse(tok, index, offset)
                index += 1
                offset += len(tok) + 1
            if len(pending) > MAX_TOKEN:
                raise ParseError(pending, index, offset)
            if progress is not None:
                progress(bytes_read)
    if pending.endswith(b"\n"):
        pending = pending[:-2] if pending.endswith(b"\r\n") else pending[:-1]
    if pending:
        yield _parse(pending, index, offset)


def scan(path: str, step: Callable[[float], None], *, chunk_size: int = CHUNK_SIZE,
         progress: Optional[Callable[[int], None]] = None) -> None:
    """Call ``step(x)`` once per value, in order. The caller owns all state."""
    for x in iter_values(path, chunk_size=chunk_size, progress=progress):
        step(x)


# ---- statistics, each one or more scans ----

def count(path: str, **scan_kw) -> int:
    n = 0
    def step(_):
        nonlocal n
        n += 1
    scan(path, step, **scan_kw)
    return n


def min_max(path: str, **scan_kw) -> Optional[Tuple[float, float]]:
    """Smallest and largest value under total order, or None for an empty file."""
    lo = hi = None
    lo_key = hi_key = 0
    def step(x):
        nonlocal lo, hi, lo_key, hi_key
        k = total_order_key(x)
        if lo is None:
            lo, hi, lo_key, hi_key = x, x, k, k
            return
        if k < lo_key:
            lo, lo_key = x, k
        elif k > hi_key:
            hi, hi_key = x, k
    scan(path, step, **scan_kw)
    if lo is None:
        return None
    return (lo, hi)


def mean(path: str, **scan_kw) -> float:
    """Running mean; a constant stream gives back exactly that constant."""
    avg = 0.0
    n = 0
    def step(x):
        nonlocal avg, n
        n += 1
        avg += (x - avg) / n
    scan(path, step, **scan_kw)
    if n == 0:
        raise EmptyStreamError("mean")
    return avg


def variance(path: str, **scan_kw) -> float:
    """Population variance: sum of squared deviations divided by n, not n - 1.

    Two passes, the first for the mean.
    """
    avg = mean(path, **scan_kw)
    sq = 0.0
    n = 0
    def step(x):
        nonlocal sq, n
        sq += (x - avg) ** 2
        n += 1
    scan(path, step, **scan_kw)
    return sq / n


def partition_counts(path: str, threshold: float, **scan_kw) -> Tuple[int, int, int]:
    """Counts of values below, equal to and above ``threshold`` (exact, total order)."""
    pivot = total_order_key(threshold)
    less = equal = greater = 0
    def step(x):
        nonlocal less, equal, greater
        k = total_order_key(x)
        if k < pivot:
            less += 1
        elif k > pivot:
            greater += 1
        else:
            equal += 1
    scan(path, step, **scan_kw)
    return less, equal, greater


def median(path: str, tolerance: float = MEDIAN_TOLERANCE, **scan_kw) -> float:
    """Median by bisection on the value range, one scan per step.

    ``mid`` is accepted as soon as it sits in the median band, i.e. the
    surplus of values on one side is covered by the values equal to ``mid``.
    Otherwise the interval moves toward the heavier side. Stops when the
    interval is no wider than ``tolerance`` (absolute) and returns its left
    end. For an even count any point between the two middle values counts
    as a median.

    Cost is one min/max scan plus one scan per halving of (max - min) down to
    ``tolerance``.
    """
    bounds = min_max(path, **scan_kw)
    if bounds is None:
        raise EmptyStreamError("median")
    left, right = bounds
    if not (math.isfinite(left) and math.isfinite(right)):
        raise FileStatError(f"median needs finite values, range is ({left}, {right})")
    while right - left > tolerance:
        mid = left / 2 + right / 2  # no overflow near the float limits
        if mid == left or mid == right:
            break  # interval is down to adjacent floats
        less, equal, greater = partition_counts(path, mid, **scan_kw)
        if abs(greater - less) < equal + 1:
            return mid
        if greater < less:
            right = mid
        else:
            left = mid
    return left


def tails(path: str, k: int, **scan_kw) -> Tuple[List[float], Deque[float]]:
    """First ``k`` values, and the last ``k`` values oldest-first.

    Reverse the second one for most-recent-first.
    """
    if k < 0:
        raise ValueError(f"tail size must be >= 0, got {k}")
    head: List[float] = []
    tail: Deque[float] = deque(maxlen=k)
    def step(x):
        if len(head) < k:
            head.append(x)
        tail.append(x)
    scan(path, step, **scan_kw)
    return head, tail


def describe(path: str, tail_size: int = DEFAULT_TAIL_SIZE,
             tolerance: float = MEDIAN_TOLERANCE, **scan_kw) -> dict:
    """Every statistic for ``path``, computed one after another."""
    n = count(path, **scan_kw)
    if n == 0:
        raise EmptyStreamError("describe")
    lo, hi = min_max(path, **scan_kw)
    head, tail = tails(path, tail_size, **scan_kw)
    return {
        "count": n,
        "min": lo,
        "max": hi,
        "mean": mean(path, **scan_kw),
        "variance": variance(path, **scan_kw),
        "median": median(path, tolerance=tolerance, **scan_kw),
        "head": head,
        "tail": list(reversed(tail)),
    }
