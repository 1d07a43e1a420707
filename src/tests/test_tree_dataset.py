#!/usr/bin/env python3
"""
test_tree_dataset.py — Flat-arena tree and CSV loading
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd
import pytest

from dcsmc.dataset import load_dataset, tree_from_frame
from dcsmc.errors import InvalidBinomialParameters, TreeStructureError
from dcsmc.tree import Datum, Tree


def _small_tree():
    tree = Tree()
    root = tree.add_root("root")
    ny = tree.add_child(root, "NY")
    nj = tree.add_child(root, "NJ")
    tree.add_child(ny, "Albany", Datum(10, 8))
    tree.add_child(ny, "Kings", Datum(12, 3))
    tree.add_child(nj, "Essex", Datum(4, 4))
    return tree


class TestDatum:

    def test_valid(self):
        datum = Datum(10, 3)
        assert datum.number_of_trials == 10
        assert datum.number_of_successes == 3

    @pytest.mark.parametrize("trials,successes", [(-1, 0), (3, -1), (3, 4)])
    def test_invalid(self, trials, successes):
        with pytest.raises(InvalidBinomialParameters):
            Datum(trials, successes)

    def test_addition(self):
        assert Datum(3, 1) + Datum(4, 4) == Datum(7, 5)


class TestTree:

    def test_structure(self):
        tree = _small_tree()
        root = tree.root()
        assert root.level == 0
        assert [c.label for c in tree.children(root)] == ["NY", "NJ"]
        albany = tree.children(tree.children(root)[0])[0]
        assert albany.level == 2
        assert tree.path(albany) == ["root", "NY", "Albany"]
        assert tree.parent(albany).label == "NY"
        assert tree.parent(root) is None
        assert tree.is_leaf(albany)
        assert tree.datum(albany) == Datum(10, 8)
        assert len(tree) == 6
        assert tree.depth == 2

    def test_post_order_visits_children_first(self):
        tree = _small_tree()
        labels = [n.label for n in tree.post_order()]
        assert labels == ["Albany", "Kings", "NY", "Essex", "NJ", "root"]

    def test_leaves(self):
        assert [n.label for n in _small_tree().leaves()] == ["Albany", "Kings", "Essex"]

    def test_validate(self):
        assert _small_tree().validate()

    def test_leaf_without_datum(self):
        tree = _small_tree()
        tree.add_child(tree.root(), "CT")
        with pytest.raises(TreeStructureError):
            tree.validate()

    def test_internal_node_with_datum(self):
        tree = Tree()
        root = tree.add_root("root", Datum(5, 1))
        tree.add_child(root, "A", Datum(5, 2))
        with pytest.raises(TreeStructureError):
            tree.validate()

    def test_datum_of_internal_node_raises(self):
        tree = _small_tree()
        with pytest.raises(TreeStructureError):
            tree.datum(tree.root())
        assert not tree.has_datum(tree.root())

    def test_second_root_raises(self):
        tree = _small_tree()
        with pytest.raises(TreeStructureError):
            tree.add_root("again")

    def test_duplicate_sibling_label_raises(self):
        tree = _small_tree()
        with pytest.raises(TreeStructureError):
            tree.add_child(tree.root(), "NY")

    def test_unknown_node_raises(self):
        other = _small_tree()
        tree = Tree()
        tree.add_root("root")
        with pytest.raises(TreeStructureError):
            tree.children(other.leaves()[0])

    def test_empty_tree(self):
        with pytest.raises(TreeStructureError):
            Tree().root()
        with pytest.raises(TreeStructureError):
            Tree().validate()

    def test_from_paths_sums_duplicates(self):
        tree = Tree.from_paths([
            (("NY", "Albany"), Datum(10, 8)),
            (("NY", "Albany"), Datum(5, 1)),
            (("NJ", "Essex"), Datum(4, 4)),
        ])
        assert len(tree) == 5
        albany = tree.children(tree.children(tree.root())[0])[0]
        assert tree.datum(albany) == Datum(15, 9)

    def test_from_paths_empty_path_raises(self):
        with pytest.raises(TreeStructureError):
            Tree.from_paths([((), Datum(1, 1))])


class TestDataset:

    def _frame(self):
        return pd.DataFrame({
            "state": ["NY", "NY", "NJ"],
            "county": ["Albany", "Kings", "Essex"],
            "numberOfTrials": [10, 12, 4],
            "numberOfSuccesses": [8, 3, 4],
        })

    def test_tree_from_frame(self):
        tree = tree_from_frame(self._frame())
        assert [n.label for n in tree.post_order()] == ["Albany", "Kings", "NY", "Essex", "NJ", "root"]
        kings = tree.children(tree.children(tree.root())[0])[1]
        assert tree.datum(kings) == Datum(12, 3)

    def test_explicit_level_columns(self):
        tree = tree_from_frame(self._frame(), level_columns=["state"])
        ny = tree.children(tree.root())[0]
        assert tree.datum(ny) == Datum(22, 11)

    def test_missing_count_column(self):
        with pytest.raises(TreeStructureError):
            tree_from_frame(self._frame().drop(columns=["numberOfTrials"]))

    def test_missing_counts(self):
        df = self._frame()
        df.loc[1, "numberOfSuccesses"] = None
        with pytest.raises(TreeStructureError):
            tree_from_frame(df)

    def test_invalid_counts(self):
        df = self._frame()
        df.loc[0, "numberOfSuccesses"] = 11
        with pytest.raises(InvalidBinomialParameters):
            tree_from_frame(df)

    def test_fractional_counts(self):
        df = pd.DataFrame({"g": ["a"], "numberOfTrials": [10.9], "numberOfSuccesses": [8.7]})
        with pytest.raises(InvalidBinomialParameters):
            tree_from_frame(df)

    def test_whole_float_counts_accepted(self):
        df = pd.DataFrame({"g": ["a"], "numberOfTrials": [10.0], "numberOfSuccesses": [8.0]})
        tree = tree_from_frame(df)
        assert tree.datum(tree.leaves()[0]) == Datum(10, 8)

    def test_empty_hierarchy_cell(self):
        df = self._frame()
        df.loc[2, "county"] = None
        with pytest.raises(TreeStructureError):
            tree_from_frame(df)

    def test_load_keeps_leading_zeros(self, tmp_path):
        csv_path = tmp_path / "zip.csv"
        csv_path.write_text("zip,numberOfTrials,numberOfSuccesses\n01234,10,3\n1234,5,1\n")
        tree = load_dataset(csv_path)
        assert [n.label for n in tree.leaves()] == ["01234", "1234"]
        assert tree.datum(tree.leaves()[0]) == Datum(10, 3)
        assert tree.datum(tree.leaves()[1]) == Datum(5, 1)

    def test_load_ragged_rows(self, tmp_path):
        csv_path = tmp_path / "ragged.csv"
        csv_path.write_text(
            "state,county,numberOfTrials,numberOfSuccesses\nNY,Albany,10,3\nNJ,,5,1\n"
        )
        with pytest.raises(TreeStructureError):
            load_dataset(csv_path)

    def test_load_non_numeric_counts(self, tmp_path):
        csv_path = tmp_path / "text.csv"
        csv_path.write_text("state,numberOfTrials,numberOfSuccesses\nNY,ten,3\n")
        with pytest.raises(TreeStructureError):
            load_dataset(csv_path)

    def test_load_dataset(self, tmp_path):
        csv_path = tmp_path / "data.csv"
        self._frame().to_csv(csv_path, index=False)
        tree = load_dataset(csv_path)
        assert len(tree.leaves()) == 3
        assert tree.path(tree.leaves()[2]) == ["root", "NJ", "Essex"]
