"""Event type constants emitted by the companion engine."""


class EventTypes:
    """Event type string constants"""

    # === Companion lifecycle ===
    COMPANION_CREATED = "companion_created"
    COMPANION_UPDATED = "companion_updated"
    COMPANION_RESET = "companion_reset"
    CURRENT_COMPANION_CHANGED = "current_companion_changed"

    # === Progression ===
    COMPANION_LEVELED_UP = "companion_leveled_up"
    COMPANION_EVOLVED = "companion_evolved"
    ABILITY_UNLOCKED = "ability_unlocked"
    BOND_MILESTONE_REACHED = "bond_milestone_reached"

    # === Quests ===
    PET_QUEST_STARTED = "pet_quest_started"
    PET_QUEST_COMPLETED = "pet_quest_completed"
    PET_QUEST_FAILED = "pet_quest_failed"
