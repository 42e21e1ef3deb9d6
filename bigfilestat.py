#!/usr/bin/env python3
import argparse, json, os, sys, threading, time
from collections import deque
from typing import List, Optional, Tuple

import psutil

import filestat
from filestat import MB, EmptyStreamError, FileStatError

DEFAULT_PATH = "testdata/bigfile.txt"


def human(n: int) -> str:
    if n >= 1024 * MB: return f"{n/(1024*MB):.1f} GB"
    if n >= MB: return f"{n/MB:.1f} MB"
    return f"{n} B"


def lap(since: float) -> Tuple[float, float]:
    """Seconds since ``since`` and the new checkpoint; callers thread the checkpoint through."""
    now = time.time()
    return now - since, now


class ScanProgress:
    """Progress callback for filestat.scan: % of file, MB/s over a 5s window, ETA.

    One instance follows one statistic across all of its passes.
    """
    def __init__(self, label: str, total_size: int, every_bytes: int = 64 * MB):
        self.label = label
        self.total_size = total_size
        self.every_bytes = every_bytes
        self.passes = 1
        self.window = deque()  # (time, bytes)
        self.last_bytes = 0
        self.last_report = 0

    def __call__(self, bytes_read: int):
        now = time.time()
        # a count that goes back, or any call after a pass reached the end, starts a new pass
        if self.last_bytes and (bytes_read < self.last_bytes or self.last_bytes >= self.total_size):
            self.passes += 1
            self.window.clear()
            self.last_report = 0
        self.last_bytes = bytes_read
        self.window.append((now, bytes_read))
        while self.window and now - self.window[0][0] > 5:
            self.window.popleft()
        done = bytes_read >= self.total_size
        if bytes_read - self.last_report < self.every_bytes and not done:
            return
        self.last_report = bytes_read
        print(self.line(), file=sys.stderr)

    def line(self) -> str:
        rate = 0.0
        if len(self.window) >= 2:
            dt = self.window[-1][0] - self.window[0][0]
            db = self.window[-1][1] - self.window[0][1]
            rate = db / dt if dt > 0 else 0.0
        pct_str = "  ?.%"
        eta_str = ""
        if self.total_size > 0:
            pct = min(100.0, self.last_bytes / self.total_size * 100)
            pct_str = f"{pct:5.1f}%"
            if rate > 0 and self.last_bytes < self.total_size:
                eta_str = f" | ETA ~{int((self.total_size - self.last_bytes) / rate)}s"
        pass_str = f" pass {self.passes}" if self.passes > 1 else ""
        return f"[progress] {self.label}{pass_str} {pct_str} | {rate/MB:,.1f} MB/s{eta_str}"


class PeakRss:
    """Samples this process's resident set size on a daemon thread."""
    def __init__(self, interval: float = 0.05):
        self.interval = interval
        self.peak = 0
        self._proc = psutil.Process(os.getpid())
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _sample(self):
        rss = self._proc.memory_info().rss
        if rss > self.peak:
            self.peak = rss

    def _run(self):
        while not self._stop.is_set():
            self._sample()
            self._stop.wait(self.interval)

    def start(self) -> "PeakRss":
        self._thread.start()
        return self

    def stop(self) -> int:
        self._stop.set()
        self._thread.join(timeout=0.2)
        self._sample()
        return self.peak


def fmt_values(xs: List[float]) -> str:
    return "[" + ", ".join(f"{x:.3f}" for x in xs) + "]"


def scan_options(path: str, label: str, chunk_size: int, show_progress: bool) -> dict:
    opts = {"chunk_size": chunk_size}
    if show_progress:
        opts["progress"] = ScanProgress(label, os.stat(path).st_size)
    return opts


def print_report(path: str, *, tail: int, show: int, tolerance: float,
                 chunk_size: int, show_progress: bool):
    """One line per statistic, each with the time it took. Stops at the first failure."""
    def opts(label):
        return scan_options(path, label, chunk_size, show_progress)
    start = time.time()
    checkpoint = start

    n = filestat.count(path, **opts("LEN"))
    dt, checkpoint = lap(checkpoint)
    print(f"LEN\t\t{n:_}\t({dt:.3f}s)")

    bounds = filestat.min_max(path, **opts("MIN, MAX"))
    if bounds is None:
        raise EmptyStreamError("min_max")
    dt, checkpoint = lap(checkpoint)
    print(f"MIN, MAX\t{bounds}\t({dt:.3f}s)")

    avg = filestat.mean(path, **opts("AVERAGE"))
    dt, checkpoint = lap(checkpoint)
    print(f"AVERAGE\t\t{avg}\t({dt:.3f}s)")

    var = filestat.variance(path, **opts("DISPERSION"))
    dt, checkpoint = lap(checkpoint)
    print(f"DISPERSION\t{var}\t({dt:.3f}s)")

    med = filestat.median(path, tolerance=tolerance, **opts("MEDIAN"))
    dt, checkpoint = lap(checkpoint)
    print(f"MEDIAN\t\t{med}\t({dt:.3f}s)")

    head, last = filestat.tails(path, tail, **opts("TAILS"))
    dt, checkpoint = lap(checkpoint)
    print(f"LEFT TAIL\t{fmt_values(head[:show])}\t({dt:.3f}s)")
    print(f"RIGHT TAIL\t{fmt_values(list(reversed(last))[:show])}")

    print(f"TIME TOOK\t{time.time() - start:.3f}s")


def print_json(path: str, *, tail: int, show: int, tolerance: float,
               chunk_size: int, show_progress: bool):
    opts = scan_options(path, "DESCRIBE", chunk_size, show_progress)
    summary = filestat.describe(path, tail_size=tail, tolerance=tolerance, **opts)
    summary["head"] = summary["head"][:show]
    summary["tail"] = summary["tail"][:show]
    print(json.dumps(summary, indent=2))


def main(argv: Optional[List[str]] = None):
    ap = argparse.ArgumentParser(description="Streaming statistics for a large file of space-separated numbers")
    ap.add_argument("file", nargs="?", default=DEFAULT_PATH, help=f"Input path (default {DEFAULT_PATH})")
    ap.add_argument("--tail", type=int, default=filestat.DEFAULT_TAIL_SIZE, help="Values kept for the head/tail samples")
    ap.add_argument("--show", type=int, default=filestat.SHOWN_TAIL, help="Values printed from each sample")
    ap.add_argument("--tolerance", type=float, default=filestat.MEDIAN_TOLERANCE, help="Absolute width at which the median search stops")
    ap.add_argument("--chunk-mb", type=int, default=filestat.CHUNK_SIZE // MB, help="Read block size per scan (MB)")
    ap.add_argument("--progress", action="store_true", help="Show per-scan progress with %% complete, MB/s, ETA on stderr")
    ap.add_argument("--memory", action="store_true", help="Report peak resident memory at the end")
    ap.add_argument("--json", action="store_true", help="Print all statistics as JSON")
    args = ap.parse_args(argv)

    if args.tail < 0 or args.show < 0:
        ap.error("--tail and --show must be >= 0")
    if args.chunk_mb <= 0:
        ap.error("--chunk-mb must be > 0")

    kw = dict(tail=args.tail, show=args.show, tolerance=args.tolerance,
              chunk_size=args.chunk_mb * MB, show_progress=args.progress)
    sampler = PeakRss().start() if args.memory else None
    try:
        if args.json:
            print_json(args.file, **kw)
        else:
            print_report(args.file, **kw)
    except (FileStatError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        if sampler is not None:
            peak = sampler.stop()
            print(f"(peak RSS {human(peak)})", file=sys.stderr)


if __name__ == "__main__":
    main()
