"""Tests for the command-line driver."""

from __future__ import annotations

import itertools

import pandas as pd
import pytest

from chordmml.cli import build_parser, main


@pytest.fixture
def csv_path(tmp_path):
    rows = []
    for a, b, d in itertools.product([0, 1], repeat=3):
        rows.extend([(a, b, a + b, d)] * (200 if a == b else 50))
    path = tmp_path / "data.csv"
    pd.DataFrame(rows, columns=["A", "B", "C", "D"]).to_csv(path, index=False)
    return path


def _read_edges(path) -> set[frozenset[str]]:
    lines = path.read_text().splitlines()
    return {frozenset(part.strip() for part in line.split(",")) for line in lines}


class TestCli:
    def test_defaults(self) -> None:
        args = build_parser().parse_args(["in.csv", "out.txt"])
        assert args.no_missing is False
        assert args.max_steps is None
        assert args.n_jobs == 1

    def test_in_memory(self, csv_path, tmp_path) -> None:
        out = tmp_path / "edges.txt"
        assert main([str(csv_path), str(out)]) == 0
        assert _read_edges(out) == {frozenset("AB"), frozenset("AC"), frozenset("BC")}

    def test_streamed_matches_in_memory(self, csv_path, tmp_path) -> None:
        out_mem = tmp_path / "mem.txt"
        out_stream = tmp_path / "stream.txt"
        main([str(csv_path), str(out_mem), "--no-missing"])
        main([str(csv_path), str(out_stream), "--no-missing", "--stream", "--chunksize", "97"])
        assert out_mem.read_text() == out_stream.read_text()

    def test_max_steps(self, csv_path, tmp_path) -> None:
        out = tmp_path / "edges.txt"
        main([str(csv_path), str(out), "--max-steps", "1"])
        assert len(out.read_text().splitlines()) == 1
