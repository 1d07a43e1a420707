"""
Load hierarchical binomial data from CSV.

Expected layout, one row per leaf:

    state,county,school,numberOfTrials,numberOfSuccesses
    NY,Albany,S1,120,87
    NY,Albany,S2,95,60
    ...

Hierarchy columns run outermost first. Every row hangs below a synthetic
root node (level 0). Rows with the same label path are summed.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from .errors import InvalidBinomialParameters, TreeStructureError
from .tree import Datum, Tree

logger = logging.getLogger(__name__)

TRIALS_COLUMN = "numberOfTrials"
SUCCESSES_COLUMN = "numberOfSuccesses"


def tree_from_frame(
    df: pd.DataFrame,
    level_columns: Optional[Sequence[str]] = None,
    trials_column: str = TRIALS_COLUMN,
    successes_column: str = SUCCESSES_COLUMN,
    root_label: str = "root",
) -> Tree:
    """
    Build a Tree from a DataFrame of leaf rows.

    Args:
        df: One row per leaf observation
        level_columns: Hierarchy columns, outermost first (default: every
                       column except the two count columns, in order)
        trials_column: Column with the number of trials
        successes_column: Column with the number of successes
        root_label: Label of the synthetic root

    Raises:
        TreeStructureError: missing columns, missing counts or empty labels
        InvalidBinomialParameters: fractional or negative counts, successes > trials
    """
    for column in (trials_column, successes_column):
        if column not in df.columns:
            raise TreeStructureError(f"missing column {column!r}")

    if level_columns is None:
        level_columns = [c for c in df.columns if c not in (trials_column, successes_column)]
    level_columns = list(level_columns)
    if not level_columns:
        raise TreeStructureError("no hierarchy columns")
    missing = [c for c in level_columns if c not in df.columns]
    if missing:
        raise TreeStructureError(f"missing hierarchy columns: {missing}")

    counts = df[[trials_column, successes_column]].apply(pd.to_numeric, errors="coerce")
    if counts.isna().any().any():
        bad = df.index[counts.isna().any(axis=1)].tolist()
        raise TreeStructureError(f"rows without numeric observation counts: {bad[:10]}")
    fractional = (counts % 1 != 0).any(axis=1)
    if fractional.any():
        bad = df.index[fractional].tolist()
        raise InvalidBinomialParameters(f"counts must be whole numbers, rows: {bad[:10]}")

    labels = df[level_columns]
    blank = labels.isna() | labels.apply(lambda col: col.astype(str).str.strip().eq(""))
    if blank.any().any():
        bad = df.index[blank.any(axis=1)].tolist()
        raise TreeStructureError(f"rows with empty hierarchy cells: {bad[:10]}")

    rows = []
    for path, trials, successes in zip(
        labels.astype(str).itertuples(index=False, name=None),
        counts[trials_column],
        counts[successes_column],
    ):
        rows.append((path, Datum(int(trials), int(successes))))

    tree = Tree.from_paths(rows, root_label=root_label)
    tree.validate()
    return tree


def load_dataset(
    path,
    level_columns: Optional[List[str]] = None,
    trials_column: str = TRIALS_COLUMN,
    successes_column: str = SUCCESSES_COLUMN,
) -> Tree:
    """
    Read a CSV file and build its tree.

    Every cell is read as text so labels such as "01234" keep their leading
    zeros; the count columns are parsed as numbers afterwards.
    """
    path = Path(path)
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    tree = tree_from_frame(
        df,
        level_columns=level_columns,
        trials_column=trials_column,
        successes_column=successes_column,
    )
    logger.info(
        "Loaded %s: %d rows, %d nodes, %d leaves, depth %d",
        path.name, len(df), len(tree), len(tree.leaves()), tree.depth,
    )
    return tree
