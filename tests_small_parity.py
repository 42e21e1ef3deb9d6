import json, os, subprocess, sys, tempfile

import bigfilestat

SCRIPT = os.path.join(os.path.dirname(os.path.abspath(__file__)), "bigfilestat.py")


def _run(text, *args):
    with tempfile.NamedTemporaryFile("w", delete=False, suffix=".txt") as f:
        f.write(text); path = f.name
    try:
        return subprocess.run([sys.executable, SCRIPT, path, *args], capture_output=True, text=True)
    finally:
        os.remove(path)


def test_report_prints_every_statistic():
    r = _run("1 2 3 4 5", "--tail", "2", "--show", "2")
    assert r.returncode == 0, r.stderr
    out = r.stdout
    assert "LEN\t\t5\t(" in out
    assert "MIN, MAX\t(1.0, 5.0)\t(" in out
    assert "AVERAGE\t\t3.0\t(" in out
    assert "DISPERSION\t2.0\t(" in out
    assert "MEDIAN\t\t3.0\t(" in out
    assert "LEFT TAIL\t[1.000, 2.000]\t(" in out
    assert "RIGHT TAIL\t[5.000, 4.000]" in out
    assert "TIME TOOK\t" in out


def test_bad_token_stops_the_report():
    r = _run("1 2 x 4")
    assert r.returncode == 1
    assert "LEN" not in r.stdout
    assert "error: token #2 at byte 4" in r.stderr


def test_empty_file_reports_count_then_fails():
    r = _run("")
    assert r.returncode == 1
    assert "LEN\t\t0\t(" in r.stdout
    assert "MIN, MAX" not in r.stdout
    assert "min_max needs at least one value" in r.stderr


def test_json_output():
    r = _run("5 4 3 2 1", "--json", "--tail", "3", "--show", "2")
    assert r.returncode == 0, r.stderr
    summary = json.loads(r.stdout)
    assert summary["count"] == 5
    assert summary["median"] == 3.0
    assert summary["head"] == [5.0, 4.0]
    assert summary["tail"] == [1.0, 2.0]


def test_progress_and_memory_go_to_stderr():
    r = _run("1 2 3", "--progress", "--memory")
    assert r.returncode == 0, r.stderr
    assert "[progress] LEN 100.0%" in r.stderr
    assert "[progress] MEDIAN" in r.stderr
    assert "peak RSS" in r.stderr
    assert "[progress]" not in r.stdout


def test_missing_file():
    r = subprocess.run([sys.executable, SCRIPT, "/nonexistent/numbers.txt"], capture_output=True, text=True)
    assert r.returncode == 1
    assert "error:" in r.stderr


def test_lap_threads_the_checkpoint():
    dt, checkpoint = bigfilestat.lap(0.0)
    assert dt == checkpoint > 0
    dt2, checkpoint2 = bigfilestat.lap(checkpoint)
    assert 0 <= dt2 and checkpoint2 >= checkpoint


def test_scan_progress_counts_passes(capsys):
    progress = bigfilestat.ScanProgress("MEDIAN", total_size=100, every_bytes=1000)
    progress(50)
    assert capsys.readouterr().err == ""
    progress(100)
    assert "[progress] MEDIAN 100.0%" in capsys.readouterr().err
    progress(40)
    progress(100)
    assert "[progress] MEDIAN pass 2 100.0%" in capsys.readouterr().err


def test_scan_progress_counts_passes_of_a_single_block_file(capsys):
    progress = bigfilestat.ScanProgress("MEDIAN", total_size=100, every_bytes=1000)
    progress(100)
    progress(100)
    progress(100)
    err = capsys.readouterr().err.splitlines()
    assert err == [
        "[progress] MEDIAN 100.0% | 0.0 MB/s",
        "[progress] MEDIAN pass 2 100.0% | 0.0 MB/s",
        "[progress] MEDIAN pass 3 100.0% | 0.0 MB/s",
    ]
