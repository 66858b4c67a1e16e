"""Mood derivation. Pure function of the stat snapshot."""

from companion_engine.core.companion.enums import Mood


def derive_mood(hunger: int, happiness: int, health: int) -> Mood:
    """First matching rule wins.

    1. happiness > 80 and hunger < 30 -> excited
    2. happiness > 60 and health > 70 -> happy
    3. happiness > 40 and hunger < 70 -> content
    4. health < 30 -> sad
    5. otherwise neutral
    """
    if happiness > 80 and hunger < 30:
        return Mood.EXCITED
    if happiness > 60 and health > 70:
        return Mood.HAPPY
    if happiness > 40 and hunger < 70:
        return Mood.CONTENT
    if health < 30:
        return Mood.SAD
    return Mood.NEUTRAL
