"""Module turning enrollment engagement into an implicit 0-5 rating."""
import math
from datetime import datetime, timezone
from typing import Optional

from course_recommender.data.schemas import Enrollment

MAX_RATING = 5.0
FAST_ENGAGEMENT_DAYS = 30
SECONDS_PER_DAY = 60 * 60 * 24


def _now_like(reference: datetime) -> datetime:
    # Naive and aware datetimes cannot be subtracted from each other.
    if reference.tzinfo is None:
        return datetime.now()
    return datetime.now(timezone.utc)


def generate_implicit_rating(enrollment: Enrollment, now: Optional[datetime] = None) -> float:
    """Synthesise a rating in [0, 5] from progress, completion, quiz results and pacing.

    Args:
        enrollment (Enrollment): Enrollment snapshot to score.
        now (datetime, optional): Reference clock used for enrollments that are not
            completed yet. Defaults to the current time.

    Returns:
        float: The clamped implicit rating.
    """
    rating = 0.0

    # Progress weight (40%)
    rating += (enrollment.progress / 100) * 4

    # Completion bonus (30%)
    if enrollment.completed:
        rating += 3

    # Quiz performance (30%)
    if enrollment.has_passed_quiz and enrollment.quiz_score:
        rating += (enrollment.quiz_score / 100) * 3

    # Time engagement bonus
    end = enrollment.completed_at
    if end is None:
        end = now if now is not None else _now_like(enrollment.started_at)
    days_enrolled = (end - enrollment.started_at).total_seconds() / SECONDS_PER_DAY
    if 0 < days_enrolled < FAST_ENGAGEMENT_DAYS:
        rating += 0.5

    if math.isnan(rating):
        # Corrupt progress or quiz values carry no signal
        rating = 0.0
    return min(max(rating, 0.0), MAX_RATING)
