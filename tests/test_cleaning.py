import numpy as np
import pandas as pd
import pytest

from cgmdx.cleaning import clean
from cgmdx.config import ID_COL, GLU_COL, IMPUTED_COL
from cgmdx.errors import MalformedReadingError
from cgmdx.metrics import compute


def test_low_token_replaced_and_above_percent(make_readings):
    raw = make_readings({"S1": ["low", 150]})
    cleaned = clean(raw, sentinel_value=39)

    assert cleaned[GLU_COL].tolist() == [39.0, 150.0]
    assert cleaned[IMPUTED_COL].tolist() == [True, False]
    assert compute(cleaned, thresholds_above=[140], thresholds_below=[]).loc["S1", "above_140"] == 50.0


def test_length_order_and_no_tokens_left(make_readings):
    rng = np.random.default_rng(7)
    values = [("low" if rng.random() < 0.2 else float(v)) for v in rng.integers(40, 400, size=200)]
    values[3] = " LOW "
    values[4] = "123.5"
    raw = make_readings({"A": values[:120], "B": values[120:]})

    cleaned = clean(raw)

    assert len(cleaned) == len(raw)
    assert cleaned[ID_COL].tolist() == raw[ID_COL].tolist()
    assert pd.api.types.is_float_dtype(cleaned[GLU_COL])
    assert np.isfinite(cleaned[GLU_COL]).all()
    assert cleaned.loc[4, GLU_COL] == 123.5
    assert cleaned.loc[3, IMPUTED_COL]


def test_input_not_mutated(make_readings):
    raw = make_readings({"S1": ["low", 100]})
    before = raw.copy()
    clean(raw)
    pd.testing.assert_frame_equal(raw, before)


def test_sentinel_value_is_configurable(make_readings):
    cleaned = clean(make_readings({"S1": ["Low"]}), sentinel_value=35.5)
    assert cleaned[GLU_COL].tolist() == [35.5]


@pytest.mark.parametrize("bad", [None, np.nan, "high?", "", float("inf")])
def test_malformed_reading_raises_with_subject(make_readings, bad):
    raw = make_readings({"S1": [100, bad]})
    with pytest.raises(MalformedReadingError) as exc:
        clean(raw)
    assert exc.value.subject_id == "S1"
    assert "row 1" in str(exc.value)


def test_isolate_drops_only_affected_subject(make_readings, caplog):
    raw = make_readings({"A": [100, "garbage"], "B": ["low", 120]})
    cleaned = clean(raw, on_error="isolate")

    assert set(cleaned[ID_COL]) == {"B"}
    assert cleaned.attrs["excluded_subjects"] == ["A"]
    assert "Excluding subject 'A'" in caplog.text


def test_unknown_error_mode(make_readings):
    with pytest.raises(ValueError):
        clean(make_readings({"S1": [100]}), on_error="ignore")
