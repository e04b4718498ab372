from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    Table,
    Uuid,
    CheckConstraint,
)
import uuid
import enum

from swipematch.core.clock import utcnow
from swipematch.db.session import Base


class PreferredGender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    ANY = "any"


# Many-to-many join between users and interest tags
user_interests = Table(
    "user_interests",
    Base.metadata,
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("interest_id", Integer, ForeignKey("interests.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    """Account identity as seen by the matching core."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(50), unique=True, nullable=False, index=True)
    gender = Column(String(10), nullable=False, index=True)  # male, female, other
    birth_date = Column(Date, nullable=False)
    city = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Profile(Base):
    """Profile details; one-to-one with User."""

    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    bio = Column(Text, nullable=True)
    height_cm = Column(Integer, nullable=True)
    occupation = Column(String(100), nullable=True)
    education = Column(String(100), nullable=True)

    # Location (both null means unknown, never treat as 0,0)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Interest(Base):
    """Interest tag, used only for intersection counting."""

    __tablename__ = "interests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    category = Column(String(50), nullable=True)


class Preference(Base):
    """Discovery preferences; exactly one per user."""

    __tablename__ = "preferences"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    preferred_gender = Column(String(10), nullable=False)  # male, female, other, any
    min_age = Column(Integer, nullable=False)
    max_age = Column(Integer, nullable=False)
    max_distance_km = Column(Integer, nullable=False, default=50)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("min_age <= max_age", name="chk_preference_age_range"),
        CheckConstraint("max_distance_km BETWEEN 1 AND 500", name="chk_preference_distance"),
    )

    @property
    def gender_filter(self) -> PreferredGender:
        return PreferredGender(self.preferred_gender)

    def accepts_age(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age
