# ABOUTME: Dice notation parsing and local check rolling for front-ends that roll on the player's behalf.
# ABOUTME: The engine itself never rolls; roll_check produces a DiceRollResult to submit like any other roll.

import random
import re

from trpg_events.models.dice_models import DiceRollResult

VALID_DICE_SIDES = {4, 6, 8, 10, 12, 20, 100}

DICE_NOTATION_PATTERN = re.compile(r'^(\d*)d(\d+)([+-]\d+)?$')


def parse_dice_notation(notation: str) -> tuple[int, int, int]:
    """
    Split dice notation into (count, sides, modifier).

    Examples:
        "1d20+3" -> (1, 20, 3)
        "d20" -> (1, 20, 0)
        "2d6-1" -> (2, 6, -1)

    Raises:
        ValueError: If notation is malformed or uses an unsupported die
    """
    notation = notation.strip().lower().replace(" ", "")
    match = DICE_NOTATION_PATTERN.match(notation)

    if not match:
        raise ValueError(
            f"Invalid dice notation: '{notation}'. "
            f"Expected 'XdY' or 'XdY+Z' (e.g., 'd20', '1d20+3')"
        )

    count_str, sides_str, modifier_str = match.groups()
    count = int(count_str) if count_str else 1
    sides = int(sides_str)
    modifier = int(modifier_str) if modifier_str else 0

    if count < 1 or count > 100:
        raise ValueError(f"Number of dice must be between 1 and 100, got {count}")

    if sides not in VALID_DICE_SIDES:
        raise ValueError(
            f"Invalid die size: d{sides}. "
            f"Supported dice: {', '.join(f'd{d}' for d in sorted(VALID_DICE_SIDES))}"
        )

    return count, sides, modifier


def roll_check(notation: str, target_number: int, rng: random.Random | None = None) -> DiceRollResult:
    """
    Roll a single-die check such as "1d20+3" against a target number.

    Args:
        notation: Single-die notation with optional modifier
        target_number: Target the roll is made against
        rng: Optional random source (tests pass a seeded Random)

    Returns:
        DiceRollResult with the caller-side success reading filled in

    Raises:
        ValueError: If notation is invalid or rolls more than one die
    """
    count, sides, modifier = parse_dice_notation(notation)
    if count != 1:
        raise ValueError(f"Checks roll exactly one die, got '{notation}'")

    raw_roll = (rng or random).randint(1, sides)
    total = raw_roll + modifier

    return DiceRollResult(
        dice_type=f"d{sides}",
        raw_roll=raw_roll,
        modifiers=modifier,
        total_result=total,
        target_number=target_number,
        success=total >= target_number,
    )
