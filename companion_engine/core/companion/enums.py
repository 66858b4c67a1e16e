"""Companion enums"""

from enum import Enum


class Stage(str, Enum):
    EGG = "egg"
    BABY = "baby"
    TEEN = "teen"
    ADULT = "adult"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


class Mood(str, Enum):
    HAPPY = "happy"
    EXCITED = "excited"
    PLAYFUL = "playful"
    CONTENT = "content"
    NEUTRAL = "neutral"
    SAD = "sad"
    SLEEPY = "sleepy"


class PetColor(str, Enum):
    DEFAULT = "default"
    GOLDEN = "golden"
    COSMIC = "cosmic"
    FOREST = "forest"
    SUNSET = "sunset"
    OCEAN = "ocean"
    ROSE = "rose"


class PetSkin(str, Enum):
    DEFAULT = "default"
    FLUFFY = "fluffy"
    SHINY = "shiny"
    MYSTICAL = "mystical"


class Activity(str, Enum):
    """Interaction kinds that grow the bond"""

    FEED = "feed"
    PLAY = "play"
    HEAL = "heal"
    CLEAN = "clean"
    QUEST_COMPLETE = "quest_complete"


class PaymentMethod(str, Enum):
    """How a paid interaction is settled with the player ledger"""

    GEMS = "gems"
    XP = "xp"
