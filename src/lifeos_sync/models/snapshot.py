"""Data model for the application-state document.

The whole of the user's progress (profile, goals, per-day logs, running and
lifting history, reading) lives in one `Snapshot`. The persistence engine
only ever replaces or writes it whole; it reads its internals for nothing
but entry counting and the presence of a profile.

Only the parts the engine reads or edits are modelled. Everything else is
kept as whatever JSON the application wrote, so documents from any client
version load and save back unchanged.
"""

from typing import Any, Optional

from pydantic import Field

from lifeos_sync.models.base import DateKey, DocumentModel, Milliseconds

SCHEMA_VERSION = 1


class Profile(DocumentModel):
    """Body measurements captured during onboarding.

    Values are stored as entered; clients have written both numbers and
    numeric strings.
    """

    start_weight: Any = None
    height: Any = Field(default=None, description="Height in inches.")
    age: Any = None


class Goals(DocumentModel):
    """Nutrition and body-weight targets."""

    target_weight: Any = None
    daily_protein: Any = None
    daily_calories: Any = None
    tdee: Any = None


class DayRecord(DocumentModel):
    """Everything logged for a single calendar day.

    Attributes:
        exercises: Completion flags keyed by exercise slot.
        habits: Completion flags keyed by habit id.
        run_distance: Miles run that day.
        xp: Experience earned that day.
    """

    exercises: Any = Field(default_factory=dict)
    habits: Any = Field(default_factory=dict)
    weight: Any = None
    protein: Any = None
    calories: Any = None
    carbs: Any = None
    fats: Any = None
    sleep: Any = None
    run_distance: Any = None
    xp: Any = 0
    completed: Any = False
    failed: Any = False


def _default_stats() -> dict[str, Any]:
    return {
        "totalXP": 0,
        "skillXP": {"strength": 0, "discipline": 0, "nutrition": 0, "recovery": 0},
        "bestStreak": 0,
    }


def _default_reading() -> dict[str, Any]:
    return {"currentBook": None, "completedBooks": [], "yearlyGoal": 12}


class Snapshot(DocumentModel):
    """The entire application state at one point in time.

    Attributes:
        version: Schema version of the document.
        last_modified: Milliseconds timestamp of the last successful mutation.
        profile: Onboarding profile. Its presence marks a recognizable
            document during recovery.
        days: Per-day records keyed by ``YYYY-MM-DD``.
        lift_history: Lift sessions keyed by exercise name, each a list of
            session objects.
        run_log: Logged runs. Normally a list; older clients wrote a map.
    """

    version: int = SCHEMA_VERSION
    last_modified: Milliseconds = 0
    onboarding_complete: Any = False
    created_at: Any = None
    profile: Optional[Profile] = None
    goals: Goals = Field(default_factory=Goals)
    stats: Any = Field(default_factory=_default_stats)
    debt: Any = Field(default_factory=list)
    days: dict[DateKey, DayRecord] = Field(default_factory=dict)
    running: Any = Field(default_factory=dict)
    run_log: Any = Field(default_factory=list)
    weekly_mileage_target: Any = None
    alcohol_log: Any = Field(default_factory=list)
    reading: Any = Field(default_factory=_default_reading)
    exercise_week: Any = 0
    lift_history: Any = Field(default_factory=dict)
    personal_records: Any = Field(default_factory=dict)

    def has_schema_marker(self) -> bool:
        """Whether this document looks like real application state."""
        return self.profile is not None

    def to_document(self) -> dict[str, Any]:
        """Returns the JSON-compatible document in its persisted key format."""
        return self.model_dump(mode="json", by_alias=True)
