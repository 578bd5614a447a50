from __future__ import annotations

import numpy as np

from vitalscan.config import PipelineConfig
from vitalscan.pipeline import CaptureStateMachine, Phase, Sample, Update
from vitalscan.synth import iter_samples, synthetic_rgb


def _drive(machine: CaptureStateMachine, samples, fs: float = 30.0) -> list[Update]:
    """Feed samples, ticking the session timer once per second of samples."""
    updates = []
    per_tick = int(fs)
    for k, s in enumerate(samples):
        updates.append(machine.on_sample(s))
        if (k + 1) % per_tick == 0:
            machine.on_tick()
    return updates


def test_sample_from_rgb_uses_green_minus_red() -> None:
    s = Sample.from_rgb(100.0, 103.5, 90.0, 1.25, has_face=False)
    assert s.value == 3.5 and s.timestamp == 1.25 and not s.has_face


def test_end_to_end_72_bpm() -> None:
    rows = synthetic_rgb(bpm=72.0, duration=40.0, fs=30.0, amplitude=1.0, noise=0.1, seed=0)
    machine = CaptureStateMachine(PipelineConfig())
    machine.start()
    assert machine.phase is Phase.CALIBRATING

    samples = list(iter_samples(rows))
    warm = _drive(machine, samples[:120])
    assert all(u.estimate is None for u in warm)
    assert machine.phase is Phase.MEASURING

    updates = _drive(machine, samples[120:300])
    live = [u.estimate for u in updates if u.estimate is not None]
    assert live
    assert 67.0 <= live[0].bpm <= 77.0
    assert live[0].accepted

    _drive(machine, samples[300:])
    assert machine.phase is Phase.REPORT
    rep = machine.report
    assert rep is not None
    assert 69 <= rep.bpm <= 75
    assert rep.confident
    assert abs(rep.respiration - rep.bpm / 4.0) <= 1.0
    assert 0 <= rep.stress <= 100


def test_analysis_runs_on_cadence_not_every_frame() -> None:
    rows = synthetic_rgb(bpm=72.0, duration=12.0, seed=1)
    machine = CaptureStateMachine(PipelineConfig())
    machine.start()
    updates = _drive(machine, iter_samples(rows))
    n_est = sum(u.estimate is not None for u in updates)
    # 8 s of measuring at one analysis per 0.5 s
    assert 14 <= n_est <= 17
    assert updates[0].signal is None  # one sample has no rate yet
    assert all(u.signal is not None for u in updates[1:])


def test_chart_value_is_filtered_tail() -> None:
    machine = CaptureStateMachine(PipelineConfig(calibration_warmup_frames=30))
    machine.start()
    rng = np.random.RandomState(5)
    for k in range(300):
        level = 0.0 if k < 150 else 8.0
        upd = machine.on_sample(Sample(level + rng.randn(), k / 30.0))
        if len(machine.store) < 2:
            continue
        filtered = machine.filter.apply(machine.store.snapshot(), machine.store.sample_rate())
        assert upd.signal is not None
        assert np.isclose(upd.signal, filtered[-1])


def test_flat_scene_is_rejected() -> None:
    machine = CaptureStateMachine(PipelineConfig())
    machine.start()
    flat = [Sample.from_rgb(100.0, 100.0, 100.0, k / 30.0) for k in range(40 * 30)]
    updates = _drive(machine, flat)
    ests = [u.estimate for u in updates if u.estimate is not None]
    assert ests
    assert all(e.bpm == 0.0 and e.snr == 0.0 for e in ests)
    assert machine.phase is Phase.REPORT
    assert machine.report is not None
    assert machine.report.bpm == 0 and machine.report.confidence == 0.0


def test_missing_face_rejects_windows() -> None:
    rows = synthetic_rgb(bpm=72.0, duration=10.0, seed=2)
    machine = CaptureStateMachine(PipelineConfig())
    machine.start()
    updates = _drive(machine, iter_samples(rows, has_face=False))
    ests = [u.estimate for u in updates if u.estimate is not None]
    assert ests and all(e.bpm == 0.0 for e in ests)
    assert machine.metrics.bpm == []


def test_idle_ignores_samples_and_ticks() -> None:
    machine = CaptureStateMachine()
    upd = machine.on_sample(Sample(1.0, 0.0))
    assert upd.phase is Phase.IDLE and upd.signal is None
    assert len(machine.store) == 0
    assert machine.on_tick().phase is Phase.IDLE


def test_store_stays_bounded_during_session() -> None:
    cfg = PipelineConfig(buffer_capacity=256)
    machine = CaptureStateMachine(cfg)
    machine.start()
    for s in iter_samples(synthetic_rgb(duration=20.0)):
        machine.on_sample(s)
        assert len(machine.store) <= 256


def test_finish_early_produces_single_report() -> None:
    rows = synthetic_rgb(bpm=72.0, duration=10.0, seed=3)
    machine = CaptureStateMachine()
    machine.start()
    _drive(machine, iter_samples(rows))
    assert machine.phase is Phase.MEASURING
    upd = machine.finish()
    assert upd.phase is Phase.REPORT and upd.report is not None
    rep = machine.report
    machine.on_tick()
    machine.on_sample(Sample(5.0, 100.0))
    assert machine.report is rep
    assert machine.phase is Phase.REPORT


def test_timer_expiry_transitions_to_report() -> None:
    machine = CaptureStateMachine(PipelineConfig(session_duration_sec=3, calibration_warmup_frames=1))
    machine.start()
    machine.on_sample(Sample(0.0, 0.0))
    assert machine.phase is Phase.MEASURING
    assert machine.on_tick().time_left == 2
    machine.on_tick()
    upd = machine.on_tick()
    assert upd.phase is Phase.REPORT and upd.report is not None


def test_degenerate_timestamps_give_no_estimate() -> None:
    machine = CaptureStateMachine(PipelineConfig(calibration_warmup_frames=1))
    machine.start()
    for k in range(100):
        machine.on_sample(Sample(float(np.sin(k)), 5.0))
    assert machine.phase is Phase.MEASURING
    assert machine.analyze() is None


def test_reset_is_idempotent_and_clears_state() -> None:
    machine = CaptureStateMachine()
    machine.reset()
    machine.reset()
    assert machine.phase is Phase.IDLE and len(machine.store) == 0

    machine.start()
    _drive(machine, iter_samples(synthetic_rgb(duration=8.0)))
    assert len(machine.store) > 0 and machine.metrics.bpm
    assert machine.analyzer.last_bpm > 0.0
    machine.reset()
    machine.reset()
    assert machine.phase is Phase.IDLE
    assert len(machine.store) == 0
    assert machine.metrics.bpm == [] and machine.metrics.rmssd == []
    assert machine.analyzer.last_bpm == 0.0
    assert machine.report is None and machine.latest is None


def test_start_discards_previous_session() -> None:
    machine = CaptureStateMachine()
    machine.start()
    _drive(machine, iter_samples(synthetic_rgb(duration=8.0)))
    machine.start()
    assert machine.phase is Phase.CALIBRATING
    assert len(machine.store) == 0 and machine.metrics.bpm == []
    state = machine.state()
    assert state["phase"] == "calibrating" and state["samples"] == 0
