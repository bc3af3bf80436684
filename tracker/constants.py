"""
Tracker-wide constants.

Skill identifiers follow the hiscores API: type 0 is the Overall aggregate,
the remaining small integers are individual skills. Types 19 and 20 are
reserved and never sent by the API.
"""

class SkillConstants:
    """Constants describing hiscores skill records."""
    
    # Aggregate record
    OVERALL = 0
    
    # Stored/served XP values are real XP multiplied by this
    XP_SCALE = 10
    
    # Levels for skills a player has no record for
    DEFAULT_LEVEL = 1
    
    SKILL_NAMES = {
        0: "Overall",
        1: "Attack",
        2: "Defence",
        3: "Strength",
        4: "Hitpoints",
        5: "Ranged",
        6: "Prayer",
        7: "Magic",
        8: "Cooking",
        9: "Woodcutting",
        10: "Fletching",
        11: "Fishing",
        12: "Firemaking",
        13: "Crafting",
        14: "Smithing",
        15: "Mining",
        16: "Herblore",
        17: "Agility",
        18: "Thieving",
        21: "Runecrafting",
    }
    
    @classmethod
    def skill_name(cls, skill_type: int) -> str:
        """Display name for a skill type, falling back to the raw id."""
        return cls.SKILL_NAMES.get(skill_type, f"Skill {skill_type}")

class RunConstants:
    """Constants for update runs."""
    
    # How many stored snapshots the decision policy looks at
    HISTORY_DEPTH = 2
    
    # Players listed by the stats command
    RECENT_PLAYERS_LIMIT = 5
    
    # Process exit codes
    EXIT_SUCCESS = 0
    EXIT_FAILURE = 1
