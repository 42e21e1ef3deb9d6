import math, random, statistics

import pytest

import filestat
from filestat import EmptyStreamError, FileStatError, ParseError
from make_numbers import write_numbers


def _write(tmp_path, text, name="data.txt"):
    p = tmp_path / name
    p.write_bytes(text.encode("ascii") if isinstance(text, str) else text)
    return str(p)


def test_small_file_every_statistic(tmp_path):
    path = _write(tmp_path, "1 2 3 4 5")
    assert filestat.count(path) == 5
    assert filestat.min_max(path) == (1.0, 5.0)
    assert filestat.mean(path) == 3.0
    assert filestat.variance(path) == 2.0
    assert abs(filestat.median(path) - 3.0) <= filestat.MEDIAN_TOLERANCE
    head, tail = filestat.tails(path, 2)
    assert head == [1.0, 2.0]
    assert list(reversed(tail)) == [5.0, 4.0]


def test_empty_file(tmp_path):
    path = _write(tmp_path, "")
    assert filestat.count(path) == 0
    assert filestat.min_max(path) is None
    for fn in (filestat.mean, filestat.variance, filestat.median, filestat.describe):
        with pytest.raises(EmptyStreamError):
            fn(path)
    head, tail = filestat.tails(path, 3)
    assert head == [] and list(tail) == []


def test_bad_token_fails_every_statistic(tmp_path):
    path = _write(tmp_path, "1 2 x 4")
    for fn in (filestat.count, filestat.min_max, filestat.mean, filestat.variance, filestat.median):
        with pytest.raises(ParseError) as exc:
            fn(path)
        assert exc.value.token == b"x"
        assert exc.value.index == 2
        assert exc.value.offset == 4
    with pytest.raises(ParseError):
        filestat.tails(path, 2)


def test_missing_file_raises_os_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        filestat.count(str(tmp_path / "missing.txt"))


def test_scan_calls_step_in_order(tmp_path):
    path = _write(tmp_path, "10.5 -2.25 3e2 7 .5 5. -1.5E+2")
    seen = []
    filestat.scan(path, seen.append)
    assert seen == [10.5, -2.25, 300.0, 7.0, 0.5, 5.0, -150.0]


def test_tokens_split_across_blocks(tmp_path):
    text = " ".join(repr(x / 7) for x in range(-50, 50))
    path = _write(tmp_path, text)
    expected = [x / 7 for x in range(-50, 50)]
    for chunk_size in (1, 2, 3, 7, 64):
        assert list(filestat.iter_values(path, chunk_size=chunk_size)) == expected


def test_progress_gets_cumulative_bytes(tmp_path):
    path = _write(tmp_path, "1 2 3 4 5 6 7 8 9")
    reported = []
    filestat.scan(path, lambda x: None, chunk_size=4, progress=reported.append)
    assert reported == sorted(reported)
    assert reported[-1] == 17


@pytest.mark.parametrize("text", ["1  2", " 1 2", "1_0", "1 2\n3", "0x10", "1e", "--1", "1,5"])
def test_rejected_tokens(tmp_path, text):
    path = _write(tmp_path, text)
    with pytest.raises(ParseError):
        filestat.count(path)


@pytest.mark.parametrize("text", ["1 2 ", "1 2\n", "1 2\r\n", "1 2 \n"])
def test_trailing_delimiters_accepted(tmp_path, text):
    path = _write(tmp_path, text)
    assert list(filestat.iter_values(path)) == [1.0, 2.0]


def test_parse_error_is_a_value_error():
    err = ParseError(b"abc", 3, 10)
    assert isinstance(err, ValueError)
    assert isinstance(err, FileStatError)
    assert "token #3 at byte 10" in str(err)


def test_special_literals(tmp_path):
    path = _write(tmp_path, "inf -Infinity NaN +1")
    values = list(filestat.iter_values(path))
    assert values[0] == math.inf
    assert values[1] == -math.inf
    assert math.isnan(values[2])
    assert values[3] == 1.0


def test_total_order_key():
    ordered = [-math.inf, -1e308, -1.0, -5e-324, -0.0, 0.0, 5e-324, 1.0, 1e308, math.inf, math.nan]
    keys = [filestat.total_order_key(x) for x in ordered]
    assert keys == sorted(keys)
    assert len(set(keys)) == len(keys)


def test_min_max_uses_total_order(tmp_path):
    lo, hi = filestat.min_max(_write(tmp_path, "0.0 -0.0 3"))
    assert lo == 0.0 and math.copysign(1.0, lo) == -1.0
    assert hi == 3.0
    lo, hi = filestat.min_max(_write(tmp_path, "1 nan 2", name="nan.txt"))
    assert lo == 1.0 and math.isnan(hi)


def test_median_rejects_non_finite_range(tmp_path):
    with pytest.raises(FileStatError):
        filestat.median(_write(tmp_path, "1 inf 2"))


def test_partition_counts(tmp_path):
    path = _write(tmp_path, "1 2 2 3")
    assert filestat.partition_counts(path, 2.0) == (1, 2, 1)
    assert filestat.partition_counts(path, 2.5) == (3, 0, 1)
    assert filestat.partition_counts(path, 0.0) == (0, 0, 4)


def test_median_single_and_constant(tmp_path):
    assert filestat.median(_write(tmp_path, "7")) == 7.0
    path = _write(tmp_path, "4 4 4", name="const.txt")
    assert filestat.median(path) == 4.0
    assert filestat.variance(path) == 0.0


def test_mean_of_constant_stream_is_exact(tmp_path):
    path = _write(tmp_path, "0.1 0.1 0.1")
    assert filestat.min_max(path) == (0.1, 0.1)
    assert filestat.mean(path) == 0.1
    assert filestat.variance(path) == 0.0
    assert abs(filestat.median(path) - 0.1) <= filestat.MEDIAN_TOLERANCE


@pytest.mark.parametrize("chunk_size", [4096, filestat.CHUNK_SIZE])
def test_overlong_token_fails_fast(tmp_path, chunk_size):
    path = _write(tmp_path, "1 " + "7" * (filestat.MAX_TOKEN + 10))
    with pytest.raises(ParseError) as exc:
        list(filestat.iter_values(path, chunk_size=chunk_size))
    assert exc.value.index == 1
    assert exc.value.offset == 2


def test_median_even_count_lands_between_middle_values(tmp_path):
    tol = filestat.MEDIAN_TOLERANCE
    for text in ("1 2 3 3", "3 1 2 4", "10 -10", "0.25 0.75 0.5 1.0 0.0 0.1"):
        path = _write(tmp_path, text)
        values = sorted(float(t) for t in text.split())
        est = filestat.median(path)
        assert statistics.median_low(values) - tol <= est <= statistics.median_high(values) + tol


def test_median_converges_toward_sorted_median(tmp_path):
    rnd = random.Random(7)
    values = [rnd.uniform(-50, 50) for _ in range(1001)]
    path = _write(tmp_path, " ".join(repr(x) for x in values))
    truth = statistics.median(values)
    errors = []
    for tol in (1.0, 0.1, 0.01, 1e-3, 1e-6):
        est = filestat.median(path, tolerance=tol)
        assert abs(est - truth) <= tol
        errors.append(abs(est - truth))
    assert errors == sorted(errors, reverse=True)


def test_mean_and_median_inside_range(tmp_path):
    path = str(tmp_path / "chisq.txt")
    write_numbers(path, 2001, seed=3)
    lo, hi = filestat.min_max(path)
    tol = filestat.MEDIAN_TOLERANCE
    assert lo <= filestat.mean(path) <= hi
    assert lo - tol <= filestat.median(path) <= hi + tol
    assert filestat.variance(path) >= 0.0


def test_variance_is_population_variance(tmp_path):
    values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
    path = _write(tmp_path, " ".join(repr(x) for x in values))
    assert filestat.variance(path) == pytest.approx(statistics.pvariance(values))


@pytest.mark.parametrize("n,k", [(5, 10), (10, 3), (3, 3), (4, 0), (1, 1)])
def test_tail_invariants(tmp_path, n, k):
    values = [float(i) for i in range(n)]
    path = _write(tmp_path, " ".join(repr(x) for x in values))
    head, tail = filestat.tails(path, k)
    m = min(n, k)
    assert len(head) == m and len(tail) == m
    assert head == values[:m]
    assert list(reversed(tail)) == list(reversed(values))[:m]


def test_tail_size_must_not_be_negative(tmp_path):
    with pytest.raises(ValueError):
        filestat.tails(_write(tmp_path, "1 2"), -1)


def test_describe(tmp_path):
    summary = filestat.describe(_write(tmp_path, "1 2 3 4 5"), tail_size=2)
    assert summary == {
        "count": 5,
        "min": 1.0,
        "max": 5.0,
        "mean": 3.0,
        "variance": 2.0,
        "median": 3.0,
        "head": [1.0, 2.0],
        "tail": [5.0, 4.0],
    }
