import pytest

from tspool.autoscale import AutoScaleConfig, AutoScaler, ScaleAction


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def short_config():
    return AutoScaleConfig(
        scale_up_threshold=1.5,
        scale_up_cooldown=1.0,
        scale_up_step=1,
        scale_down_threshold=0.3,
        scale_down_cooldown=2.0,
        scale_down_step=1,
        idle_timeout=3.0,
        monitor_interval=0.5,
        history_size=5,
        smoothing_factor=0.3,
        enable_autoscale=True,
    )


def test_default_config_values():
    cfg = AutoScaleConfig()
    assert cfg.scale_up_threshold == 2.0
    assert cfg.scale_up_cooldown == 10.0
    assert cfg.scale_up_step == 1
    assert cfg.scale_down_threshold == 0.5
    assert cfg.scale_down_cooldown == 30.0
    assert cfg.scale_down_step == 1
    assert cfg.idle_timeout == 60.0
    assert cfg.monitor_interval == 5.0
    assert cfg.history_size == 12
    assert cfg.smoothing_factor == 0.3
    assert cfg.enable_autoscale is True


def test_initial_history_is_zero_filled():
    scaler = AutoScaler(short_config(), FakeClock())
    assert scaler.history == [0, 0, 0, 0, 0]
    assert scaler.smoothed_queue_length() == 0.0


def test_record_keeps_history_size():
    scaler = AutoScaler(short_config(), FakeClock())
    for n in range(1, 8):
        scaler.record(n)
    assert scaler.history == [3, 4, 5, 6, 7]


def test_history_returns_copy():
    scaler = AutoScaler(short_config(), FakeClock())
    snapshot = scaler.history
    snapshot.append(99)
    assert len(scaler.history) == 5


def test_smoothed_empty_and_single():
    scaler = AutoScaler(AutoScaleConfig(history_size=0), FakeClock())
    assert scaler.smoothed_queue_length() == 0.0
    scaler = AutoScaler(AutoScaleConfig(history_size=1), FakeClock())
    scaler.record(7)
    assert scaler.history == [7]
    assert scaler.smoothed_queue_length() == 7.0


def test_smoothed_constant_history():
    scaler = AutoScaler(short_config(), FakeClock())
    for _ in range(5):
        scaler.record(4)
    assert scaler.smoothed_queue_length() == pytest.approx(4.0)


def test_smoothed_half_factor_two_values():
    scaler = AutoScaler(AutoScaleConfig(history_size=2, smoothing_factor=0.5), FakeClock())
    scaler.record(2)
    scaler.record(6)
    assert scaler.smoothed_queue_length() == pytest.approx(4.0)


def test_scale_up_after_cooldown():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    assert scaler.decide(8, 1, 1, 5) is ScaleAction.NONE
    clock.advance(1.0)
    assert scaler.decide(8, 1, 1, 5) is ScaleAction.UP
    scaler.mark_scaled()
    assert scaler.last_scale_time == 1.0
    clock.advance(0.5)
    assert scaler.decide(8, 2, 1, 5) is ScaleAction.NONE
    clock.advance(0.5)
    assert scaler.decide(8, 2, 1, 5) is ScaleAction.UP


def test_no_scale_up_at_max_or_below_threshold():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    clock.advance(100)
    assert scaler.decide(20, 5, 1, 5) is ScaleAction.NONE
    assert scaler.decide(1, 2, 1, 5) is ScaleAction.NONE


def test_scale_up_with_no_workers():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    clock.advance(5)
    assert scaler.decide(3, 0, 1, 5) is ScaleAction.UP


def test_scale_down_requires_idle_timeout():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    clock.advance(2.0)
    # Cooldown passed, but idle only since t=0 for 2s < 3s.
    assert scaler.decide(0, 3, 1, 5) is ScaleAction.NONE
    clock.advance(1.0)
    assert scaler.decide(0, 3, 1, 5) is ScaleAction.DOWN


def test_activity_resets_idle_start():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    clock.advance(10)
    assert scaler.decide(1, 5, 1, 5) is ScaleAction.NONE
    assert scaler.idle_start_time == 10
    clock.advance(2)
    assert scaler.decide(0, 5, 1, 5) is ScaleAction.NONE
    clock.advance(1)
    assert scaler.decide(0, 5, 1, 5) is ScaleAction.DOWN


def test_should_scale_down_updates_idle_when_queue_nonempty():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    assert scaler.should_scale_down(0.2, 5, 1, 50.0, 1) is False
    assert scaler.idle_start_time == 50.0


def test_no_scale_down_at_min():
    clock = FakeClock()
    scaler = AutoScaler(short_config(), clock)
    clock.advance(100)
    assert scaler.decide(0, 1, 1, 5) is ScaleAction.NONE


def test_should_scale_up_direct():
    scaler = AutoScaler(short_config(), FakeClock())
    assert scaler.should_scale_up(1.5, 1, 5, 1.0) is True
    assert scaler.should_scale_up(1.4, 1, 5, 1.0) is False
    assert scaler.should_scale_up(3.0, 1, 5, 0.5) is False
    assert scaler.should_scale_up(3.0, 5, 5, 10.0) is False


def test_scale_counts_are_clamped():
    cfg = short_config()
    cfg.scale_up_step = 3
    cfg.scale_down_step = 3
    scaler = AutoScaler(cfg, FakeClock())
    assert scaler.scale_up_count(1, 10) == 3
    assert scaler.scale_up_count(8, 10) == 2
    assert scaler.scale_up_count(10, 10) == 0
    assert scaler.scale_up_count(12, 10) == 0
    assert scaler.scale_down_count(10, 2) == 3
    assert scaler.scale_down_count(4, 2) == 2
    assert scaler.scale_down_count(2, 2) == 0
    assert scaler.scale_down_count(1, 2) == 0


def test_config_can_be_replaced():
    scaler = AutoScaler(short_config(), FakeClock())
    new = AutoScaleConfig(scale_up_threshold=2.0, scale_up_step=2, history_size=8, smoothing_factor=0.4)
    scaler.config = new
    assert scaler.config.scale_up_threshold == 2.0
    assert scaler.scale_up_count(0, 10) == 2


def test_default_clock_and_config():
    scaler = AutoScaler()
    assert scaler.config.history_size == 12
    assert len(scaler.history) == 12
    assert scaler.idle_start_time == scaler.last_scale_time
    assert scaler.decide(0, 1, 1, 10) is ScaleAction.NONE