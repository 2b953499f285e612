"""Unit tests for reconnect backoff."""

from listening_player.config import PlayerSettings
from listening_player.player.backoff import ReconnectPolicy


def test_default_delays_double_up_to_cap():
    policy = ReconnectPolicy()

    assert [policy.delay(n) for n in range(6)] == [3.0, 6.0, 12.0, 24.0, 30.0, 30.0]


def test_exhausted_after_max_attempts():
    policy = ReconnectPolicy(max_attempts=2)

    assert policy.exhausted(0) is False
    assert policy.exhausted(1) is False
    assert policy.exhausted(2) is True


def test_from_settings(tmp_path):
    settings = PlayerSettings(
        reconnect_base_delay=1.0,
        reconnect_multiplier=3.0,
        reconnect_max_delay=5.0,
        reconnect_max_attempts=7,
        device_store_path=tmp_path / "storage.json",
    )

    policy = ReconnectPolicy.from_settings(settings)

    assert policy == ReconnectPolicy(base_delay=1.0, multiplier=3.0, max_delay=5.0, max_attempts=7)
    assert policy.delay(1) == 3.0
    assert policy.delay(2) == 5.0
