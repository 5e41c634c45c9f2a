# ABOUTME: Resolves a submitted roll against difficulty settings into success and critical type.
# ABOUTME: Critical type depends only on the raw roll and is independent of pass/fail.

from loguru import logger

from trpg_events.models.dice_models import CriticalType, DiceResolution, DiceRollResult
from trpg_events.models.task import DifficultySettings


class DiceResolutionEngine:
    """Stateless pass/fail and critical detection for d20-style checks"""

    def resolve(self, dice_result: DiceRollResult, settings: DifficultySettings) -> DiceResolution:
        """
        Resolve a roll.

        success is total_result >= base_target_number. A natural critical_failure
        face that still meets the target reports success=True with
        critical_type=FAILURE; both outcomes are kept as-is.

        Args:
            dice_result: Validated roll supplied by the caller
            settings: Difficulty settings of the active task

        Returns:
            DiceResolution with success and optional critical type
        """
        success = dice_result.total_result >= settings.base_target_number

        critical_type = None
        if dice_result.raw_roll == settings.critical_success:
            critical_type = CriticalType.SUCCESS
        elif dice_result.raw_roll == settings.critical_failure:
            critical_type = CriticalType.FAILURE

        logger.debug(
            f"Resolved {dice_result.dice_type}: raw={dice_result.raw_roll} "
            f"total={dice_result.total_result} vs {settings.base_target_number} "
            f"-> success={success}, critical={critical_type}"
        )
        return DiceResolution(success=success, critical_type=critical_type)
