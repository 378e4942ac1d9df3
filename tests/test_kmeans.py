# tests/test_kmeans.py
import threading

import numpy as np
import pytest
from sklearn.cluster import KMeans

from hue import kmeans
from hue.errors import ClusteringCancelled, InvalidParameter


def random_points(n=200, seed=0):
    return np.random.default_rng(seed).random((n, 3))


def blob_points(centers, per_blob=40, spread=0.02, seed=0):
    rng = np.random.default_rng(seed)
    blobs = [np.clip(rng.normal(c, spread, size=(per_blob, 3)), 0.0, 1.0) for c in centers]
    return np.vstack(blobs)


def fake_attempt(index, inertia):
    centroids = np.full((2, 3), index / 10.0)
    return kmeans.AttemptResult(index=index, centroids=centroids, inertia=inertia,
                                labels=np.zeros(4, dtype=int), n_iter=1)


def test_cluster_returns_k_centroids_in_unit_cube():
    points = random_points()
    for k in (1, 3, 5, 8):
        centroids = kmeans.cluster(points, k, attempts=3, iterations=20, seed=1)
        assert centroids.shape == (k, 3)
        assert np.all(centroids >= -1e-9)
        assert np.all(centroids <= 1 + 1e-9)


def test_select_best_picks_strictly_lowest_inertia():
    results = [fake_attempt(0, 5.0), fake_attempt(1, 2.5), fake_attempt(2, 3.0)]
    assert kmeans.select_best(results).index == 1


def test_select_best_ties_go_to_lowest_index_regardless_of_order():
    results = [fake_attempt(3, 1.0), fake_attempt(1, 1.0), fake_attempt(2, 4.0), fake_attempt(0, 1.5)]
    best = kmeans.select_best(results)
    assert best.index == 1
    np.testing.assert_array_equal(best.centroids, np.full((2, 3), 0.1))


def test_select_best_rejects_empty_results():
    with pytest.raises(InvalidParameter):
        kmeans.select_best([])


def test_same_seed_gives_identical_centroids():
    points = random_points(300, seed=4)
    first = kmeans.cluster(points, 4, attempts=5, iterations=30, seed=1234)
    second = kmeans.cluster(points, 4, attempts=5, iterations=30, seed=1234)
    np.testing.assert_array_equal(first, second)


def test_same_generator_state_gives_identical_centroids():
    points = random_points(300, seed=5)
    first = kmeans.cluster(points, 4, rng=np.random.default_rng(99))
    second = kmeans.cluster(points, 4, rng=np.random.default_rng(99))
    np.testing.assert_array_equal(first, second)


def test_identical_points_collapse_without_error():
    color = [0.2, 0.4, 0.6]
    points = [color] * 40
    result = kmeans.fit(points, 3, attempts=2, iterations=10, seed=0)
    assert result.centroids.shape == (3, 3)
    assert not np.isnan(result.centroids).any()
    np.testing.assert_allclose(result.centroids, np.tile(color, (3, 1)), atol=1e-12)
    assert result.inertia == pytest.approx(0.0, abs=1e-12)


def test_k_equal_to_point_count_gives_each_point_its_own_centroid():
    points = random_points(6, seed=3)
    result = kmeans.fit(points, 6, attempts=2, iterations=5, seed=0)
    assert result.inertia == 0.0
    np.testing.assert_array_equal(
        np.array(sorted(map(tuple, result.centroids))),
        np.array(sorted(map(tuple, points))),
    )
    assert sorted(result.counts.tolist()) == [1] * 6


def test_black_and_white_split_into_two_clusters():
    points = [[0.0, 0.0, 0.0]] * 50 + [[1.0, 1.0, 1.0]] * 50
    for seed in range(5):
        centroids = kmeans.cluster(points, 2, seed=seed)
        ordered = centroids[np.argsort(centroids.sum(axis=1))]
        np.testing.assert_allclose(ordered[0], [0, 0, 0], atol=1e-3)
        np.testing.assert_allclose(ordered[1], [1, 1, 1], atol=1e-3)


def test_single_cluster_is_the_global_mean():
    points = random_points(123, seed=8)
    centroids = kmeans.cluster(points, 1, attempts=2, iterations=3, seed=0)
    np.testing.assert_allclose(centroids[0], points.mean(axis=0), atol=1e-12)


@pytest.mark.parametrize("k", [0, -1, 11])
def test_k_out_of_range_is_rejected_before_any_attempt(monkeypatch, k):
    def fail(*args, **kwargs):
        raise AssertionError("run_attempt should not be reached")

    monkeypatch.setattr(kmeans, "run_attempt", fail)
    with pytest.raises(InvalidParameter):
        kmeans.cluster(random_points(10), k)


@pytest.mark.parametrize("points", [[], np.empty((0, 3)), None])
def test_empty_points_are_rejected(points):
    with pytest.raises(InvalidParameter):
        kmeans.cluster(points, 1)


@pytest.mark.parametrize("kwargs", [
    {"attempts": 0},
    {"iterations": 0},
    {"n_jobs": 0},
    {"tol": -1.0},
    {"k": 2.5},
    {"k": True},
])
def test_bad_parameters_are_rejected(kwargs):
    args = {"k": 2}
    args.update(kwargs)
    with pytest.raises(InvalidParameter):
        kmeans.cluster(random_points(10), **args)


@pytest.mark.parametrize("points", [
    [[0.1, 0.2], [0.3, 0.4]],
    [0.1, 0.2, 0.3],
    [[0.1, np.nan, 0.3]],
    [[0.1, "red", 0.3]],
    [[0.0, 0.0, 0.0], [255.0, 128.0, 0.0]],
    [[-0.1, 0.5, 0.5]],
])
def test_malformed_points_are_rejected(points):
    with pytest.raises(InvalidParameter):
        kmeans.cluster(points, 1)


def test_rng_and_seed_together_are_rejected():
    with pytest.raises(InvalidParameter):
        kmeans.cluster(random_points(10), 2, rng=np.random.default_rng(0), seed=1)


def test_input_array_is_not_modified():
    points = random_points(50)
    before = points.copy()
    kmeans.cluster(points, 3, seed=0)
    np.testing.assert_array_equal(points, before)
    assert points.flags.writeable


def test_assignment_ties_go_to_lowest_centroid_index():
    # first point is equidistant from centroids 0 and 1, second sits on both 2 and 3
    points = np.array([[0.5, 0.0, 0.0], [0.9, 0.9, 0.9]])
    centroids = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.9, 0.9, 0.9], [0.9, 0.9, 0.9]])
    distances = kmeans.squared_distances(points, centroids)
    assert distances[0, 0] == distances[0, 1] < distances[0, 2]
    labels, min_d2 = kmeans.assign_labels(points, centroids)
    assert labels.tolist() == [0, 2]
    np.testing.assert_allclose(min_d2, [0.25, 0.0])


def test_empty_cluster_keeps_previous_position():
    points = np.array([[0.0, 0.0, 0.0], [0.2, 0.2, 0.2], [1.0, 1.0, 1.0]])
    labels = np.array([0, 0, 1])
    centroids = np.array([[0.1, 0.1, 0.1], [0.9, 0.9, 0.9], [0.5, 0.4, 0.3]])
    new_centroids, counts = kmeans.update_centroids(points, labels, centroids)
    assert counts.tolist() == [2, 1, 0]
    np.testing.assert_allclose(new_centroids[0], [0.1, 0.1, 0.1])
    np.testing.assert_allclose(new_centroids[1], [1.0, 1.0, 1.0])
    np.testing.assert_array_equal(new_centroids[2], [0.5, 0.4, 0.3])
    # the caller's centroids are left alone
    np.testing.assert_array_equal(centroids[1], [0.9, 0.9, 0.9])


def test_inertia_is_raw_sum_of_squared_distances():
    points = random_points(80, seed=11)
    result = kmeans.fit(points, 3, attempts=2, iterations=10, seed=2)
    _, min_d2 = kmeans.assign_labels(points, result.centroids)
    assert result.inertia == pytest.approx(float(min_d2.sum()))
    assert result.counts.sum() == 80


def test_parallel_attempts_match_sequential():
    points = random_points(400, seed=6)
    sequential = kmeans.fit(points, 5, attempts=6, iterations=25, seed=77)
    parallel = kmeans.fit(points, 5, attempts=6, iterations=25, seed=77, n_jobs=3)
    np.testing.assert_array_equal(sequential.centroids, parallel.centroids)
    assert sequential.attempt == parallel.attempt
    assert sequential.inertia == parallel.inertia


def test_cancel_event_stops_clustering():
    event = threading.Event()
    event.set()
    with pytest.raises(ClusteringCancelled):
        kmeans.cluster(random_points(), 3, seed=0, cancel=event)


def test_cancel_callable_is_checked_between_iterations():
    calls = []

    def cancel_after_a_few():
        calls.append(1)
        return len(calls) > 4

    with pytest.raises(ClusteringCancelled):
        kmeans.cluster(random_points(), 3, attempts=1, iterations=50, seed=0, cancel=cancel_after_a_few)
    assert len(calls) == 5


def test_tolerance_stops_converged_attempts_early():
    points = [[0.0, 0.0, 0.0]] * 20 + [[1.0, 1.0, 1.0]] * 20
    result = kmeans.fit(points, 2, attempts=3, iterations=50, seed=0, tol=0.0)
    assert result.n_iter < 50
    full = kmeans.fit(points, 2, attempts=3, iterations=50, seed=0)
    assert full.n_iter == 50
    assert result.inertia == pytest.approx(full.inertia)


def test_inertia_matches_sklearn_on_separated_blobs():
    centers = [[0.1, 0.1, 0.1], [0.9, 0.2, 0.2], [0.3, 0.3, 0.9]]
    points = blob_points(centers, per_blob=60, seed=21)
    ours = kmeans.fit(points, 3, attempts=40, iterations=50, seed=3)
    reference = KMeans(n_clusters=3, n_init=10, random_state=0).fit(points)
    assert ours.inertia == pytest.approx(reference.inertia_, rel=1e-6)
    for center in centers:
        assert np.min(np.linalg.norm(ours.centroids - center, axis=1)) < 0.05
