# ABOUTME: Unit tests for DiceResolutionEngine.
# ABOUTME: Validates pass/fail against the base target and raw-roll critical detection.

import pytest

from trpg_events.mechanics.dice_resolution import DiceResolutionEngine
from trpg_events.models.dice_models import CriticalType
from trpg_events.models.task import DifficultySettings, TaskModifier


@pytest.fixture
def medium() -> DifficultySettings:
    return DifficultySettings(base_target_number=15)


class TestDiceResolutionEngine:
    """Test suite for roll resolution"""

    def test_meeting_target_succeeds(self, make_roll, medium):
        """Test total equal to the target is a success"""
        resolution = DiceResolutionEngine().resolve(make_roll(12, modifiers=3), medium)

        assert resolution.success is True
        assert resolution.critical_type is None

    def test_below_target_fails(self, make_roll, medium):
        resolution = DiceResolutionEngine().resolve(make_roll(11, modifiers=3), medium)

        assert resolution.success is False
        assert resolution.critical_type is None

    def test_natural_twenty_is_critical_success(self, make_roll, medium):
        resolution = DiceResolutionEngine().resolve(make_roll(20), medium)

        assert resolution.success is True
        assert resolution.critical_type == CriticalType.SUCCESS

    def test_natural_one_failing_is_critical_failure(self, make_roll, medium):
        """Test raw 1 with modifiers still short of target"""
        resolution = DiceResolutionEngine().resolve(make_roll(1, modifiers=2), medium)

        assert resolution.success is False
        assert resolution.critical_type == CriticalType.FAILURE

    def test_natural_one_meeting_target_keeps_both(self, make_roll):
        """Test a critical failure face that still meets the target succeeds"""
        easy = DifficultySettings(base_target_number=5)
        resolution = DiceResolutionEngine().resolve(make_roll(1, modifiers=6, target_number=5), easy)

        assert resolution.success is True
        assert resolution.critical_type == CriticalType.FAILURE

    def test_natural_twenty_can_still_fail(self, make_roll):
        """Test critical success is independent of pass/fail"""
        extreme = DifficultySettings(base_target_number=25)
        resolution = DiceResolutionEngine().resolve(make_roll(20, modifiers=2, target_number=25), extreme)

        assert resolution.success is False
        assert resolution.critical_type == CriticalType.SUCCESS

    def test_modifiers_in_settings_do_not_change_success(self, make_roll):
        """Test success is decided against the base target only"""
        settings = DifficultySettings(
            base_target_number=15,
            modifiers=[TaskModifier(label="fog", value=5)],
        )
        resolution = DiceResolutionEngine().resolve(make_roll(15), settings)

        assert resolution.success is True
