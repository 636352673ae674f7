"""
User roles and travel modes.
"""

import enum


class UserRole(str, enum.Enum):
    """
    Caller role, as resolved by the identity service.

    Roles:
        ADMIN: Operator; may request the full leaderboard roster
        USER: Regular traveller (default role)
    """
    ADMIN = "ADMIN"
    USER = "USER"


class TravelMode(str, enum.Enum):
    """Travel-mode tags accepted on trips and points."""
    CAR = "car"
    BIKE = "bike"
    WALK = "walk"
    RUN = "run"
    TRANSIT = "transit"


# Bucket for segments whose destination point carries no mode
UNKNOWN_MODE = "unknown"
