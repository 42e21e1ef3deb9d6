#!/usr/bin/env python3
import random, sys
from pathlib import Path

# Usage: python make_numbers.py out.txt count seed [chisq2|uniform|normal]
# Example: python make_numbers.py testdata/bigfile.txt 100_000_000 1337 chisq2
# chisq2 is chi-square with 2 degrees of freedom: mean 2, variance 4, median 2*ln(2)

DISTRIBUTIONS = {
    "chisq2": lambda rnd: rnd.expovariate(0.5),
    "uniform": lambda rnd: rnd.random(),
    "normal": lambda rnd: rnd.gauss(0.0, 1.0),
}

BATCH = 100_000


def write_numbers(out: str, count: int, seed: int, dist: str = "chisq2"):
    """Write ``count`` numbers separated by single spaces, no trailing delimiter."""
    draw = DISTRIBUTIONS[dist]
    rnd = random.Random(seed)
    p = Path(out)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", newline="") as f:
        written = 0
        while written < count:
            n = min(BATCH, count - written)
            if written:
                f.write(" ")
            f.write(" ".join(repr(draw(rnd)) for _ in range(n)))
            written += n


def main():
    if len(sys.argv) not in (4, 5):
        print("Usage: python make_numbers.py out.txt count seed [chisq2|uniform|normal]", file=sys.stderr)
        sys.exit(2)
    out, count, seed = sys.argv[1], int(sys.argv[2].replace("_", "")), int(sys.argv[3])
    dist = sys.argv[4] if len(sys.argv) == 5 else "chisq2"
    if dist not in DISTRIBUTIONS:
        print(f"unknown distribution {dist!r}, pick one of {', '.join(DISTRIBUTIONS)}", file=sys.stderr)
        sys.exit(2)
    write_numbers(out, count, seed, dist)


if __name__ == "__main__":
    main()
