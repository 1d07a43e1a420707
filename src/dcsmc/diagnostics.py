"""
===============================================================================
DIAGNOSTICS — Append-Only Records Emitted During a DC-SMC Pass
===============================================================================

Record types:
    ess        {level, nodeLabel, ess, relativeEss}
    meanStats  {path, meanMean, meanSD}
    varStats   {path, varMean, varSD}          (internal nodes only)

plus the raw sample arrays behind the summary records, for external
histogram rendering.

Sinks:
    MemoryDiagnostics  keeps everything in lists (tests, programmatic use)
    CsvDiagnostics     appends rows to <output>/<record>.csv and writes raw
                       arrays to <output>/samples/<path>_*.npy
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Set

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EssRecord:
    level: int
    nodeLabel: str
    ess: float
    relativeEss: float


@dataclass(frozen=True)
class MeanStatsRecord:
    path: str
    meanMean: float
    meanSD: float


@dataclass(frozen=True)
class VarStatsRecord:
    path: str
    varMean: float
    varSD: float


def describe(samples: np.ndarray) -> tuple:
    """Sample mean and sample standard deviation (ddof=1)."""
    samples = np.asarray(samples, dtype=float)
    if samples.size < 2:
        return float(np.mean(samples)), float("nan")
    return float(np.mean(samples)), float(np.std(samples, ddof=1))


class DiagnosticsSink(Protocol):
    """Receives diagnostics from the engine; flush() is called once per node."""

    def record_ess(self, level: int, node_label: str, ess: float, relative_ess: float) -> None: ...

    def record_summary(
        self,
        path: str,
        mean_samples: np.ndarray,
        variance_samples: Optional[np.ndarray] = None,
    ) -> None: ...

    def flush(self) -> None: ...


class MemoryDiagnostics:
    """
    In-memory sink.

    Attributes:
        ess_records: One EssRecord per processed node
        mean_records: MeanStatsRecord per reported node
        var_records: VarStatsRecord per reported internal node
        samples: Raw arrays keyed by "<path>_logisticMean" / "<path>_var"
        n_flushes: Number of flush() calls
    """

    def __init__(self):
        self.ess_records: List[EssRecord] = []
        self.mean_records: List[MeanStatsRecord] = []
        self.var_records: List[VarStatsRecord] = []
        self.samples: Dict[str, np.ndarray] = {}
        self.n_flushes = 0

    def record_ess(self, level: int, node_label: str, ess: float, relative_ess: float) -> None:
        self.ess_records.append(EssRecord(level, node_label, ess, relative_ess))

    def record_summary(
        self,
        path: str,
        mean_samples: np.ndarray,
        variance_samples: Optional[np.ndarray] = None,
    ) -> None:
        mean_mean, mean_sd = describe(mean_samples)
        self.mean_records.append(MeanStatsRecord(path, mean_mean, mean_sd))
        self.samples[f"{path}_logisticMean"] = np.asarray(mean_samples)
        if variance_samples is not None:
            var_mean, var_sd = describe(variance_samples)
            self.var_records.append(VarStatsRecord(path, var_mean, var_sd))
            self.samples[f"{path}_var"] = np.asarray(variance_samples)

    def flush(self) -> None:
        self.n_flushes += 1

    def ess_by_label(self) -> Dict[str, EssRecord]:
        return {r.nodeLabel: r for r in self.ess_records}

    def mean_by_path(self) -> Dict[str, MeanStatsRecord]:
        return {r.path: r for r in self.mean_records}


class CsvDiagnostics:
    """
    File-backed sink.

    Rows are buffered per record type and appended to CSV on flush(), so each
    processed node is on disk before its parent starts. The first flush of a
    table truncates whatever an earlier run left in the folder.
    """

    def __init__(self, output_dir, save_samples: bool = True):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.samples_dir = self.output_dir / "samples"
        self.save_samples = save_samples
        self._pending: Dict[str, List[dict]] = {"ess": [], "meanStats": [], "varStats": []}
        self._started: Set[str] = set()

    def record_ess(self, level: int, node_label: str, ess: float, relative_ess: float) -> None:
        self._pending["ess"].append(asdict(EssRecord(level, node_label, ess, relative_ess)))

    def record_summary(
        self,
        path: str,
        mean_samples: np.ndarray,
        variance_samples: Optional[np.ndarray] = None,
    ) -> None:
        mean_mean, mean_sd = describe(mean_samples)
        self._pending["meanStats"].append(asdict(MeanStatsRecord(path, mean_mean, mean_sd)))
        self._save_array(f"{path}_logisticMean", mean_samples)
        if variance_samples is not None:
            var_mean, var_sd = describe(variance_samples)
            self._pending["varStats"].append(asdict(VarStatsRecord(path, var_mean, var_sd)))
            self._save_array(f"{path}_var", variance_samples)

    def _save_array(self, name: str, samples: np.ndarray) -> None:
        if not self.save_samples:
            return
        self.samples_dir.mkdir(parents=True, exist_ok=True)
        safe_name = name.replace("/", "_").replace("\\", "_")
        np.save(self.samples_dir / f"{safe_name}.npy", np.asarray(samples))

    def flush(self) -> None:
        for name, rows in self._pending.items():
            if not rows:
                continue
            csv_path = self.output_dir / f"{name}.csv"
            started = name in self._started
            pd.DataFrame(rows).to_csv(
                csv_path,
                mode="a" if started else "w",
                header=not started,
                index=False,
            )
            self._started.add(name)
            logger.debug("Wrote %d row(s) to %s", len(rows), csv_path)
            rows.clear()

    def read(self, name: str) -> pd.DataFrame:
        """Load one record table written so far."""
        return pd.read_csv(self.output_dir / f"{name}.csv")
