import pandas as pd

from cgmdx.cache import MetricsCache, cache_key
from cgmdx.config import ID_COL, TS_COL, GLU_COL
from cgmdx.metrics import compute_batch


def test_key_depends_on_readings_and_config(make_readings):
    a = make_readings({"S1": [100.0, 150.0]})
    b = make_readings({"S1": [100.0, 151.0]})
    config = {"thresholds_above": [140]}
    assert cache_key(a, config) == cache_key(a.copy(), config)
    assert cache_key(a, config) != cache_key(b, config)
    assert cache_key(a, config) != cache_key(a, {"thresholds_above": [180]})


def test_batch_reuses_cached_rows(make_readings):
    readings = make_readings({"A": [100.0, 200.0], "B": [60.0, 90.0, 300.0]})
    cache = MetricsCache()

    first = compute_batch(readings, cache=cache)
    assert (cache.hits, cache.misses) == (0, 2)
    second = compute_batch(readings, cache=cache)
    assert (cache.hits, cache.misses) == (2, 2)
    pd.testing.assert_frame_equal(first, second)


def test_directory_cache_survives_new_instance(make_readings, tmp_path):
    readings = make_readings({"A": [100.0, 200.0]})
    first = compute_batch(readings, cache=MetricsCache(tmp_path))
    assert list(tmp_path.glob("metrics_*.csv"))

    fresh = MetricsCache(tmp_path)
    again = compute_batch(readings, cache=fresh)
    assert fresh.hits == 1
    pd.testing.assert_frame_equal(first, again, check_dtype=False)


def test_directory_cache_keeps_id_type_and_synthesized_counts(tmp_path):
    readings = pd.DataFrame({
        ID_COL: ["007", "007"],
        TS_COL: pd.to_datetime(["2024-01-01 00:00", "2024-01-01 00:10"]),
        GLU_COL: [100.0, 200.0],
    })
    first = compute_batch(readings, time_weighted=True, cache=MetricsCache(tmp_path))
    again = compute_batch(readings, time_weighted=True, cache=MetricsCache(tmp_path))

    assert first.attrs["synthesized"] == {"007": 1}
    assert again.index.tolist() == ["007"]
    assert again.attrs["synthesized"] == {"007": 1}
    assert list(again.columns) == list(first.columns)


def test_directory_cache_keeps_integer_ids(make_readings, tmp_path):
    readings = make_readings({7: [100.0, 200.0]})
    compute_batch(readings, cache=MetricsCache(tmp_path))
    again = compute_batch(readings, cache=MetricsCache(tmp_path))
    assert again.index.tolist() == [7]
