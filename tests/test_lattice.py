"""Tests for chordmml data encoding and the Lattice."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from chordmml.data import (
    CategoricalDataset,
    InputStructureError,
    StreamingReader,
    Variable,
    infer_variables,
    scan_csv_variables,
    validate_variables,
)
from chordmml.lattice import Lattice


def _make_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "a": [0, 0, 1, 1, 1, 0],
            "b": ["x", "y", "x", "y", "y", "y"],
            "c": [1.0, np.nan, 2.0, 2.0, 1.0, np.nan],
        }
    )


def _chunks(frame: pd.DataFrame, size: int) -> list[pd.DataFrame]:
    return [frame.iloc[i : i + size] for i in range(0, len(frame), size)]


# ---------------------------------------------------------------------------
# Variables and encoding
# ---------------------------------------------------------------------------


class TestVariables:
    def test_infer_variables(self) -> None:
        variables = infer_variables(_make_frame())
        assert [v.name for v in variables] == ["a", "b", "c"]
        assert variables[0].categories == (0, 1)
        assert variables[1].categories == ("x", "y")
        assert variables[2].categories == (1.0, 2.0)

    def test_categorical_dtype_keeps_unused_categories(self) -> None:
        frame = pd.DataFrame({"a": pd.Categorical(["u", "u"], categories=["u", "v", "w"])})
        assert infer_variables(frame)[0].categories == ("u", "v", "w")

    def test_arity_with_missing_bucket(self) -> None:
        variable = Variable("a", (0, 1, 2))
        assert variable.arity(has_missing_values=True) == 4
        assert variable.arity(has_missing_values=False) == 3

    def test_no_variables_raises(self) -> None:
        with pytest.raises(InputStructureError, match="no variables"):
            validate_variables([])

    def test_single_category_raises(self) -> None:
        with pytest.raises(InputStructureError, match="at least 2"):
            validate_variables([Variable("a", ("only",))])

    def test_encode_with_missing_bucket(self) -> None:
        codes = CategoricalDataset(_make_frame()).encode(has_missing_values=True)
        assert codes.dtype == np.int32
        assert codes[:, 2].tolist() == [0, 2, 1, 1, 0, 2]
        assert codes[:, 1].tolist() == [0, 1, 0, 1, 1, 1]

    def test_missing_values_without_bucket_raise(self) -> None:
        with pytest.raises(InputStructureError, match="missing values"):
            CategoricalDataset(_make_frame()).encode(has_missing_values=False)

    def test_unknown_category_raises(self) -> None:
        frame = pd.DataFrame({"a": [0, 1, 2]})
        dataset = CategoricalDataset(frame, variables=[Variable("a", (0, 1))])
        with pytest.raises(InputStructureError, match="outside its categories"):
            dataset.encode(has_missing_values=True)

    def test_text_and_typed_values_encode_identically(self) -> None:
        typed = pd.DataFrame({"a": [0, 1, 1, 0]})
        text = typed.astype(str)
        variables = [Variable("a", (0, 1))]
        np.testing.assert_array_equal(
            CategoricalDataset(typed, variables).encode(False),
            CategoricalDataset(text, variables).encode(False),
        )

    def test_accepts_numpy_array(self) -> None:
        dataset = CategoricalDataset(np.array([[0, 1], [1, 0], [1, 1]]))
        assert dataset.variable_names == ["0", "1"]
        assert dataset.n_instances == 3

    def test_float_column_with_missing_values(self) -> None:
        frame = pd.DataFrame({"a": [0.0, 1.0, np.nan, 1.0] * 50, "b": [0, 1, 0, 1] * 50})
        codes = CategoricalDataset(frame).encode(has_missing_values=True)
        assert codes[:4, 0].tolist() == [0, 1, 2, 1]
        assert codes[:4, 1].tolist() == [0, 1, 0, 1]

    def test_float_chunk_matches_integer_categories(self) -> None:
        typed = pd.DataFrame({"a": [0, 1, 1, 0]})
        variables = infer_variables(typed)
        floats = typed.astype(float)
        floats.iloc[2, 0] = np.nan
        codes = CategoricalDataset(floats, variables).encode(has_missing_values=True)
        assert codes[:, 0].tolist() == [0, 1, 2, 0]

    def test_number_and_numeric_text_share_a_category(self) -> None:
        frame = pd.DataFrame({"a": [1, "1", 2, 2] * 10, "b": [0, 1] * 20})
        dataset = CategoricalDataset(frame)
        assert dataset.arities(has_missing_values=False) == [2, 2]
        assert dataset.encode(has_missing_values=False)[:4, 0].tolist() == [0, 0, 1, 1]

    def test_repeated_category_raises(self) -> None:
        with pytest.raises(InputStructureError, match="more than once"):
            validate_variables([Variable("a", (0, "0", 1))])


# ---------------------------------------------------------------------------
# Lattice
# ---------------------------------------------------------------------------


class TestLattice:
    @pytest.fixture
    def lattice(self) -> Lattice:
        return Lattice.from_dataset(CategoricalDataset(_make_frame()), has_missing_values=True)

    def test_dimensions(self, lattice: Lattice) -> None:
        assert lattice.n_instances == 6
        assert lattice.n_variables == 3
        assert lattice.arities == [3, 3, 3]

    def test_empty_subset(self, lattice: Lattice) -> None:
        assert lattice.counts([]).tolist() == [6]

    def test_single_variable_counts(self, lattice: Lattice) -> None:
        assert sorted(lattice.counts([0]).tolist()) == [3, 3]
        assert sorted(lattice.counts([2]).tolist()) == [2, 2, 2]

    def test_pair_counts(self, lattice: Lattice) -> None:
        # (a, b): (0,x), (0,y) x2, (1,x), (1,y) x2
        assert sorted(lattice.counts([0, 1]).tolist()) == [1, 1, 2, 2]

    def test_counts_sum_to_n(self, lattice: Lattice) -> None:
        assert int(lattice.counts([0, 1, 2]).sum()) == 6

    def test_counts_are_cached_by_subset(self, lattice: Lattice) -> None:
        assert lattice.counts([1, 0]) is lattice.counts((0, 1))

    def test_n_cells(self, lattice: Lattice) -> None:
        assert lattice.n_cells([0, 1, 2]) == 27
        assert lattice.n_cells([]) == 1

    def test_huge_tables_fall_back_to_row_unique(self) -> None:
        rng = np.random.default_rng(0)
        codes = rng.integers(0, 3, size=(50, 4))
        arities = [3, 2**30, 2**30, 3]
        counts = Lattice(codes, arities).counts([0, 1, 2, 3])
        _, expected = np.unique(codes, axis=0, return_counts=True)
        assert sorted(counts.tolist()) == sorted(expected.tolist())

    def test_no_instances_raises(self) -> None:
        with pytest.raises(InputStructureError, match="no instances"):
            Lattice(np.empty((0, 2), dtype=np.int32), [2, 2])

    def test_no_variables_raises(self) -> None:
        with pytest.raises(InputStructureError, match="no variables"):
            Lattice(np.empty((3, 0), dtype=np.int32), [])

    def test_stream_matches_dataset(self) -> None:
        frame = _make_frame()
        dataset = CategoricalDataset(frame)
        reader = StreamingReader(dataset.variables, _chunks(frame, 4))
        streamed = Lattice.from_stream(reader, has_missing_values=True)
        full = Lattice.from_dataset(dataset, has_missing_values=True)

        assert streamed.n_instances == full.n_instances
        for subset in ([0], [1, 2], [0, 1, 2]):
            assert sorted(streamed.counts(subset).tolist()) == sorted(full.counts(subset).tolist())

    def test_stream_is_consumed_once(self) -> None:
        frame = _make_frame()
        reader = StreamingReader(infer_variables(frame), _chunks(frame, 2))
        Lattice.from_stream(reader, has_missing_values=True)
        with pytest.raises(RuntimeError, match="once"):
            Lattice.from_stream(reader, has_missing_values=True)

    def test_empty_stream_raises(self) -> None:
        reader = StreamingReader([Variable("a", (0, 1))], [])
        with pytest.raises(InputStructureError, match="no instances"):
            Lattice.from_stream(reader, has_missing_values=False)

    def test_csv_stream(self, tmp_path) -> None:
        path = tmp_path / "data.csv"
        _make_frame().to_csv(path, index=False)

        variables = scan_csv_variables(str(path), chunksize=4)
        assert [v.name for v in variables] == ["a", "b", "c"]
        assert variables[2].categories == ("1.0", "2.0")

        lattice = Lattice.from_stream(StreamingReader.from_csv(str(path), chunksize=4), has_missing_values=True)
        assert lattice.n_instances == 6
        assert sorted(lattice.counts([0, 1]).tolist()) == [1, 1, 2, 2]

    def test_single_row_chunks_fill_one_buffer(self) -> None:
        frame = _make_frame()
        dataset = CategoricalDataset(frame)
        reader = StreamingReader(dataset.variables, _chunks(frame, 1))
        streamed = Lattice.from_stream(reader, has_missing_values=True)
        full = Lattice.from_dataset(dataset, has_missing_values=True)

        assert streamed.n_instances == 6
        for subset in ([0], [2], [0, 1, 2]):
            assert sorted(streamed.counts(subset).tolist()) == sorted(full.counts(subset).tolist())

    def test_csv_scan_merges_equal_numbers(self, tmp_path) -> None:
        path = tmp_path / "data.csv"
        path.write_text("a,b\n1,x\n1.0,y\n2,x\n2,y\n")
        variables = scan_csv_variables(str(path))
        assert variables[0].categories == ("1", "2")

        lattice = Lattice.from_stream(StreamingReader(variables, [pd.read_csv(path, dtype=str)]), False)
        assert sorted(lattice.counts([0]).tolist()) == [2, 2]
