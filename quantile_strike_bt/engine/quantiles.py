"""
Rolling (expanding-window) quantile estimator.

For every evaluation index i the put/call quantiles are computed from the strict
prefix returns[0 .. i-1]. Indices are independent, so they are partitioned into
chunks and dispatched to a joblib worker pool; results are written back into
pre-sized arrays by position, so the output never depends on completion order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Literal, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs

from ..errors import BacktestCancelled, validate_confidence_level
from .returns import ReturnSeries

logger = logging.getLogger(__name__)

Backend = Literal["loky", "threading", "sequential"]

# Fewer defined observations than this leaves the forecast undefined
MIN_OBSERVATIONS = 2


def defined_values(values: np.ndarray) -> np.ndarray:
    """Drop missing (NaN) entries"""
    arr = np.asarray(values, dtype=float)
    return arr[~np.isnan(arr)]


def empirical_quantile(values: np.ndarray, q: Union[float, Sequence[float]]) -> Union[float, np.ndarray]:
    """
    Empirical quantile with linear interpolation between order statistics (type 7).

    Missing entries are excluded. Returns NaN (or an array of NaN) for an empty sample.
    """
    sample = defined_values(values)
    if sample.size == 0:
        if np.ndim(q) == 0:
            return float("nan")
        return np.full(len(q), np.nan)
    result = np.quantile(sample, q, method="linear")
    if np.ndim(result) == 0:
        return float(result)
    return result


def prefix_quantiles(
    returns: np.ndarray,
    index: int,
    confidence_level: float,
    min_observations: int = MIN_OBSERVATIONS,
) -> Tuple[float, float, int]:
    """
    Put/call quantiles for one evaluation index.

    Args:
        returns: Full return series values (NaN = missing)
        index: Evaluation index i; only returns[0 .. i-1] are read
        confidence_level: alpha; put = quantile(1 - alpha), call = quantile(alpha)
        min_observations: Minimum defined observations in the prefix

    Returns:
        (put_quantile, call_quantile, n_obs); quantiles are NaN when n_obs < min_observations
    """
    prefix = defined_values(returns[:index])
    n_obs = int(prefix.size)
    if n_obs < min_observations:
        return float("nan"), float("nan"), n_obs
    put_q, call_q = np.quantile(prefix, [1.0 - confidence_level, confidence_level], method="linear")
    return float(put_q), float(call_q), n_obs


def _forecast_chunk(
    returns: np.ndarray,
    positions: np.ndarray,
    indices: np.ndarray,
    confidence_level: float,
    min_observations: int,
) -> List[Tuple[int, float, float, int]]:
    """Worker: forecast a chunk of evaluation indices, tagged with their output positions"""
    out = []
    for pos, idx in zip(positions, indices):
        put_q, call_q, n_obs = prefix_quantiles(returns, int(idx), confidence_level, min_observations)
        out.append((int(pos), put_q, call_q, n_obs))
    return out


@dataclass
class QuantileForecasts:
    """Put/call quantile forecasts, one slot per evaluation index (input order)"""
    indices: np.ndarray
    put_quantile: np.ndarray
    call_quantile: np.ndarray
    n_obs: np.ndarray
    confidence_level: float

    def __len__(self) -> int:
        return len(self.indices)

    def missing_mask(self) -> np.ndarray:
        return np.isnan(self.put_quantile) | np.isnan(self.call_quantile)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "eval_index": self.indices,
                "n_obs": self.n_obs,
                "put_quantile": self.put_quantile,
                "call_quantile": self.call_quantile,
            }
        )


class RollingQuantileEstimator:
    """
    Expanding-window quantile forecaster.

    Args:
        confidence_level: alpha in (0, 1)
        n_jobs: joblib worker count (-1 = all cores)
        backend: "loky" (processes), "threading", or "sequential" (in-process)
        chunks_per_worker: Chunks dispatched per worker; later indices cost more, so
            several interleaved chunks per worker keep the load even
        min_observations: Minimum defined prefix observations for a forecast
        progress: Show a tqdm progress bar over completed chunks
    """

    def __init__(
        self,
        confidence_level: float,
        n_jobs: int = 1,
        backend: Backend = "loky",
        chunks_per_worker: int = 4,
        min_observations: int = MIN_OBSERVATIONS,
        progress: bool = False,
    ):
        self.confidence_level = validate_confidence_level(confidence_level)
        if backend not in ("loky", "threading", "sequential"):
            raise ValueError(f"Invalid backend: {backend}. Use 'loky', 'threading' or 'sequential'")
        self.n_jobs = int(n_jobs)
        self.backend = backend
        self.chunks_per_worker = max(1, int(chunks_per_worker))
        self.min_observations = max(1, int(min_observations))
        self.progress = bool(progress)

    def _n_workers(self) -> int:
        if self.backend == "sequential":
            return 1
        return max(1, int(effective_n_jobs(self.n_jobs)))

    def partition(self, n_indices: int) -> List[np.ndarray]:
        """
        Interleaved partition of output positions.

        Chunk k holds positions k, k + C, k + 2C, ... for C chunks, so every chunk
        mixes cheap early indices with expensive late ones.
        """
        if n_indices <= 0:
            return []
        n_chunks = min(n_indices, self._n_workers() * self.chunks_per_worker)
        positions = np.arange(n_indices)
        return [positions[k::n_chunks] for k in range(n_chunks)]

    def estimate(
        self,
        returns: Union[ReturnSeries, np.ndarray],
        indices: Sequence[int],
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> QuantileForecasts:
        """
        Forecast put/call quantiles for each evaluation index.

        Args:
            returns: Return series (NaN = missing)
            indices: Evaluation indices, each in [0, len(returns)]
            should_cancel: Polled between chunks; returning True aborts the run

        Returns:
            QuantileForecasts in the same order as indices

        Raises:
            BacktestCancelled: If should_cancel() returns True
        """
        values = returns.values if isinstance(returns, ReturnSeries) else np.asarray(returns, dtype=float)
        idx = np.asarray(indices, dtype=np.int64)
        if idx.ndim != 1:
            raise ValueError("Evaluation indices must be one-dimensional")
        if idx.size and (idx.min() < 0 or idx.max() > len(values)):
            raise ValueError(
                f"Evaluation indices must lie in [0, {len(values)}], got [{idx.min()}, {idx.max()}]"
            )

        k = len(idx)
        put_q = np.full(k, np.nan)
        call_q = np.full(k, np.nan)
        n_obs = np.zeros(k, dtype=np.int64)

        chunks = self.partition(k)
        n_jobs = 1 if self.backend == "sequential" else self.n_jobs
        backend = "loky" if self.backend == "sequential" else self.backend
        logger.info(
            f"Forecasting {k} indices in {len(chunks)} chunks "
            f"(alpha={self.confidence_level}, n_jobs={n_jobs}, backend={self.backend})"
        )

        if should_cancel is not None and should_cancel():
            raise BacktestCancelled("Run cancelled before forecasting started")

        results = Parallel(n_jobs=n_jobs, backend=backend, return_as="generator")(
            delayed(_forecast_chunk)(values, chunk, idx[chunk], self.confidence_level, self.min_observations)
            for chunk in chunks
        )

        pbar = None
        if self.progress:
            from tqdm.auto import tqdm
            pbar = tqdm(total=len(chunks), desc="Quantiles", unit="chunk", dynamic_ncols=True)

        try:
            for chunk_result in results:
                # Disjoint positions: each slot is written exactly once
                for pos, p, c, n in chunk_result:
                    put_q[pos] = p
                    call_q[pos] = c
                    n_obs[pos] = n
                if pbar is not None:
                    pbar.update(1)
                if should_cancel is not None and should_cancel():
                    raise BacktestCancelled("Run cancelled between evaluation indices")
        finally:
            if pbar is not None:
                pbar.close()
            # Discard in-flight chunks when aborting early
            close = getattr(results, "close", None)
            if close is not None:
                close()

        missing = int(np.count_nonzero(np.isnan(put_q)))
        if missing:
            logger.info(f"{missing} of {k} indices have fewer than {self.min_observations} prefix observations")

        return QuantileForecasts(
            indices=idx,
            put_quantile=put_q,
            call_quantile=call_q,
            n_obs=n_obs,
            confidence_level=self.confidence_level,
        )
