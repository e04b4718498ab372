# Export all models for easy importing
from swipematch.models.user import (
    PreferredGender,
    User,
    Profile,
    Interest,
    Preference,
    user_interests,
)
from swipematch.models.match import (
    SwipeType,
    UnorderedPair,
    Swipe,
    Match,
    Message,
    ChatMetadata,
    partner_of,
    recipient_of,
)

__all__ = [
    "PreferredGender",
    "User",
    "Profile",
    "Interest",
    "Preference",
    "user_interests",
    "SwipeType",
    "UnorderedPair",
    "Swipe",
    "Match",
    "Message",
    "ChatMetadata",
    "partner_of",
    "recipient_of",
]
