import pandas as pd
import pytest

from cgmdx.config import ID_COL, TS_COL, GLU_COL
from cgmdx.validate import assert_columns, basic_cgm_sanity


def test_assert_columns():
    with pytest.raises(ValueError, match="glucose"):
        assert_columns(pd.DataFrame({ID_COL: [1]}), [ID_COL, GLU_COL])


def test_sanity_warns_on_implausible_values(make_readings, caplog):
    df = make_readings({"S1": [15.0, 100.0]})
    basic_cgm_sanity(df, ID_COL, TS_COL, GLU_COL)
    assert "outside plausible range" in caplog.text


def test_sanity_rejects_uncleaned(make_readings):
    with pytest.raises(TypeError):
        basic_cgm_sanity(make_readings({"S1": ["low", 100]}), ID_COL, TS_COL, GLU_COL)
