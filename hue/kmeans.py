import logging
import numbers
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from sklearn.utils import check_array

from hue.errors import ClusteringCancelled, InvalidParameter

logger = logging.getLogger(__name__)

DEFAULT_K = 5
DEFAULT_ATTEMPTS = 5
DEFAULT_ITERATIONS = 50
POINT_DIMENSIONS = 3

CancelCheck = Union[Callable[[], bool], Any]  # a callable or anything with is_set(), e.g. threading.Event


@dataclass
class AttemptResult:
    """Outcome of one clustering attempt from a single random initialization."""
    index: int
    centroids: np.ndarray
    inertia: float
    labels: np.ndarray
    n_iter: int


@dataclass
class ClusterResult:
    """The winning attempt plus the per-cluster populations derived from it."""
    centroids: np.ndarray
    inertia: float
    labels: np.ndarray
    counts: np.ndarray
    attempt: int
    n_iter: int


def validate_points(points) -> np.ndarray:
    """
    Coerce the input into a read-only (N, 3) float64 array.

    Raises:
        InvalidParameter: If the input is empty, not two-dimensional, not
                          three columns wide, contains NaN/inf, or has
                          values outside [0, 1].
    """
    try:
        empty = points is None or len(points) == 0
    except TypeError as e:
        raise InvalidParameter(f"points must be a sequence of RGB triples, got {type(points).__name__}") from e
    if empty:
        raise InvalidParameter("points must contain at least one color")
    try:
        arr = check_array(points, dtype=np.float64, ensure_2d=True, copy=True)
    except (ValueError, TypeError) as e:
        raise InvalidParameter(f"points are not a valid numeric (N, 3) array: {e}") from e
    if arr.shape[1] != POINT_DIMENSIONS:
        raise InvalidParameter(f"points must be RGB triples, got {arr.shape[1]} columns")
    if arr.min() < 0.0 or arr.max() > 1.0:
        raise InvalidParameter(
            f"points must be normalized to [0, 1], got values in [{arr.min():g}, {arr.max():g}]"
        )
    arr.setflags(write=False)
    return arr


def _require_int(name: str, value, minimum: int, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    value = int(value)
    if value < minimum or (maximum is not None and value > maximum):
        upper = "" if maximum is None else f" and <= {maximum}"
        raise InvalidParameter(f"{name} must be >= {minimum}{upper}, got {value}")
    return value


def squared_distances(points: np.ndarray, centroids: np.ndarray) -> np.ndarray:
    """Dense (N, k) matrix of squared Euclidean distances."""
    diff = points[:, None, :] - centroids[None, :, :]
    return (diff ** 2).sum(axis=2)


def assign_labels(points: np.ndarray, centroids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Assign every point to its nearest centroid.

    argmin returns the first occurrence, so exact ties go to the lowest
    centroid index.

    Returns:
        (labels, min_sq_dists), both of length N.
    """
    d2 = squared_distances(points, centroids)
    labels = d2.argmin(axis=1)
    return labels, d2[np.arange(points.shape[0]), labels]


def update_centroids(points: np.ndarray, labels: np.ndarray, centroids: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Move each centroid to the mean of its members.

    A centroid with no members keeps its previous position.

    Returns:
        (new_centroids, counts)
    """
    k, dims = centroids.shape
    counts = np.bincount(labels, minlength=k)
    sums = np.stack(
        [np.bincount(labels, weights=points[:, d], minlength=k) for d in range(dims)],
        axis=1,
    )
    new_centroids = centroids.copy()
    occupied = counts > 0
    new_centroids[occupied] = sums[occupied] / counts[occupied, None]
    return new_centroids, counts


def _is_cancelled(cancel: Optional[CancelCheck]) -> bool:
    if cancel is None:
        return False
    if hasattr(cancel, "is_set"):
        return bool(cancel.is_set())
    return bool(cancel())


def run_attempt(
    points: np.ndarray,
    k: int,
    iterations: int,
    rng: np.random.Generator,
    index: int = 0,
    tol: Optional[float] = None,
    cancel: Optional[CancelCheck] = None,
) -> AttemptResult:
    """
    Run one k-means attempt: seed k distinct points, then alternate
    assignment and update for up to `iterations` rounds.

    Expects already validated input; see fit() for the checked entry point.
    """
    seed_indices = rng.choice(points.shape[0], size=k, replace=False)
    centroids = points[seed_indices].copy()

    n_iter = 0
    for _ in range(iterations):
        if _is_cancelled(cancel):
            raise ClusteringCancelled(f"attempt {index} cancelled after {n_iter} iterations")
        labels, _ = assign_labels(points, centroids)
        new_centroids, counts = update_centroids(points, labels, centroids)
        n_iter += 1
        shift = float(np.abs(new_centroids - centroids).max())
        centroids = new_centroids
        if (counts == 0).any():
            logger.debug("attempt %d iteration %d: %d empty cluster(s) held in place",
                         index, n_iter, int((counts == 0).sum()))
        if tol is not None and shift <= tol:
            break

    # Score against the final centroid positions.
    labels, min_d2 = assign_labels(points, centroids)
    inertia = float(min_d2.sum())
    logger.debug("attempt %d: inertia=%.6f after %d iterations", index, inertia, n_iter)
    return AttemptResult(index=index, centroids=centroids, inertia=inertia, labels=labels, n_iter=n_iter)


def select_best(results: Sequence[AttemptResult]) -> AttemptResult:
    """
    Pick the lowest-inertia attempt. Equal scores go to the lower attempt
    index regardless of the order results arrive in.
    """
    best: Optional[AttemptResult] = None
    for result in sorted(results, key=lambda r: r.index):
        if best is None or result.inertia < best.inertia:
            best = result
    if best is None:
        raise InvalidParameter("no attempt results to select from")
    return best


def _attempt_generators(attempts: int, rng: Optional[np.random.Generator], seed: Optional[int]) -> List[np.random.Generator]:
    if rng is not None and seed is not None:
        raise InvalidParameter("pass either rng or seed, not both")
    if rng is not None:
        if not isinstance(rng, np.random.Generator):
            raise InvalidParameter(f"rng must be a numpy Generator, got {type(rng).__name__}")
        return list(rng.spawn(attempts))
    return [np.random.default_rng(child) for child in np.random.SeedSequence(seed).spawn(attempts)]


def fit(
    points,
    k: int = DEFAULT_K,
    attempts: int = DEFAULT_ATTEMPTS,
    iterations: int = DEFAULT_ITERATIONS,
    *,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    tol: Optional[float] = None,
    n_jobs: int = 1,
    cancel: Optional[CancelCheck] = None,
) -> ClusterResult:
    """
    Multi-attempt k-means over a cloud of RGB points.

    Args:
        points: (N, 3) array-like of floats in [0, 1].
        k (int): Number of clusters, 1 <= k <= N.
        attempts (int): Independent random initializations to try.
        iterations (int): Assignment/update rounds per attempt.
        rng (np.random.Generator, optional): Parent generator; one child is spawned per attempt.
        seed (int, optional): Seed for a fresh SeedSequence when rng is not given.
        tol (float, optional): Stop an attempt early once no centroid coordinate moves more than this.
        n_jobs (int): Worker threads for running attempts. 1 runs them inline.
        cancel: Callable returning True (or an Event that is set) to abandon the run.

    Returns:
        ClusterResult for the attempt with the lowest inertia.

    Raises:
        InvalidParameter: On bad arguments, before any attempt runs.
        ClusteringCancelled: If `cancel` fires.
    """
    pts = validate_points(points)
    k = _require_int("k", k, 1, pts.shape[0])
    attempts = _require_int("attempts", attempts, 1)
    iterations = _require_int("iterations", iterations, 1)
    n_jobs = _require_int("n_jobs", n_jobs, 1)
    if tol is not None and tol < 0:
        raise InvalidParameter(f"tol must be >= 0, got {tol}")

    generators = _attempt_generators(attempts, rng, seed)

    if n_jobs == 1 or attempts == 1:
        results = []
        for index, gen in enumerate(generators):
            if _is_cancelled(cancel):
                raise ClusteringCancelled(f"cancelled before attempt {index}")
            results.append(run_attempt(pts, k, iterations, gen, index=index, tol=tol, cancel=cancel))
    else:
        with ThreadPoolExecutor(max_workers=min(n_jobs, attempts)) as pool:
            futures = [
                pool.submit(run_attempt, pts, k, iterations, gen, index, tol, cancel)
                for index, gen in enumerate(generators)
            ]
            results = [future.result() for future in futures]

    best = select_best(results)
    logger.info("k-means: k=%d, best attempt %d/%d with inertia %.6f",
                k, best.index + 1, attempts, best.inertia)
    return ClusterResult(
        centroids=best.centroids,
        inertia=best.inertia,
        labels=best.labels,
        counts=np.bincount(best.labels, minlength=k),
        attempt=best.index,
        n_iter=best.n_iter,
    )


def cluster(
    points,
    k: int = DEFAULT_K,
    attempts: int = DEFAULT_ATTEMPTS,
    iterations: int = DEFAULT_ITERATIONS,
    **kwargs,
) -> np.ndarray:
    """Return the (k, 3) centroids of the best attempt. See fit() for arguments."""
    return fit(points, k, attempts, iterations, **kwargs).centroids
