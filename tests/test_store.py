from __future__ import annotations

import numpy as np

from vitalscan.store import SampleStore


def test_store_is_bounded_fifo() -> None:
    st = SampleStore(capacity=16)
    for i in range(40):
        st.add(float(i), i / 30.0)
        assert len(st) <= 16
    vals = st.snapshot()
    ts = st.timestamps()
    assert vals.shape == ts.shape == (16,)
    assert vals[0] == 24.0 and vals[-1] == 39.0
    assert 0.0 not in vals
    assert np.allclose(ts * 30.0, vals)


def test_sample_rate_from_elapsed_time() -> None:
    st = SampleStore()
    for i in range(91):
        st.add(0.0, 10.0 + i / 30.0)
    assert np.isclose(st.duration(), 3.0)
    assert np.isclose(st.sample_rate(), 30.0)


def test_sample_rate_degenerate() -> None:
    st = SampleStore()
    assert st.sample_rate() == 0.0
    st.add(1.0, 5.0)
    st.add(2.0, 5.0)
    assert st.sample_rate() == 0.0
    st.clear()
    assert len(st) == 0
