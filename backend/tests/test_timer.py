import pytest

from chestquiz.services.games.timer import TimerSync

T0 = 1_700_000_000_000


def test_arm_uses_absolute_end():
    assert TimerSync.arm(T0, 30) == T0 + 30_000
    with pytest.raises(ValueError):
        TimerSync.arm(T0, 0)


def test_remaining_never_negative():
    end = TimerSync.arm(T0, 30)
    assert TimerSync.remaining_seconds(end, T0 + 31_000) == 0


def test_remaining_rounds_half_up():
    end = T0 + 30_000
    assert TimerSync.remaining_seconds(end, T0) == 30
    assert TimerSync.remaining_seconds(end, T0 + 29_500) == 1
    assert TimerSync.remaining_seconds(end, T0 + 27_400) == 3
    assert TimerSync.remaining_seconds(None, T0) == 0


def test_replace_only_moves_later():
    assert TimerSync.replace(None, T0) == T0
    assert TimerSync.replace(T0, T0 + 1) == T0 + 1
    assert TimerSync.replace(T0, None) is None
    with pytest.raises(ValueError):
        TimerSync.replace(T0, T0)
