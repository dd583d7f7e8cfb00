"""Readers for the point-in-time snapshot the engine trains on."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import pandas as pd
from pydantic import ValidationError

from course_recommender.data.schemas import Course, Enrollment, Student
from course_recommender.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class DataSnapshot:
    enrollments: list[Enrollment] = field(default_factory=list)
    students: list[Student] = field(default_factory=list)
    courses: list[Course] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.enrollments and self.students and self.courses)


class DataSource(Protocol):
    def load(self) -> DataSnapshot:
        """Return every enrollment, every student and every published course."""
        ...


class InMemoryDataSource:
    """Serves a fixed snapshot; handy for tests and for callers that already hold the rows."""

    def __init__(self, snapshot: DataSnapshot):
        self.snapshot = snapshot

    def load(self) -> DataSnapshot:
        return self.snapshot


def _records(df: pd.DataFrame) -> list[dict]:
    """DataFrame rows as dicts with missing cells dropped, so model defaults apply."""
    df = df.astype(object).where(df.notna(), None)
    return [{k: v for k, v in row.items() if v is not None} for row in df.to_dict("records")]


class CsvDataSource:
    """Read CSV exports of the store: ``enrollments.csv``, ``users.csv`` and ``courses.csv``.

    ``users.csv`` needs ``id`` and ``role`` columns (only students are kept),
    ``courses.csv`` needs ``id`` and ``isPublished`` (only published courses are kept).
    Enrollment columns use the store's names (``participant``, ``course``,
    ``progress``, ``completed``, ``hasPassedQuizze``, ``QuizzeScore``,
    ``startedAt``, ``completedAt``).

    Any read or validation failure is logged and yields an empty snapshot.
    """

    def __init__(self, data_dir: Path | str):
        self.data_dir = Path(data_dir)

    def _load_students(self) -> list[Student]:
        users = pd.read_csv(self.data_dir / "users.csv", dtype={"id": str, "role": str})
        students = users[users["role"] == "student"]
        return [Student(id=user_id) for user_id in students["id"]]

    def _load_courses(self) -> list[Course]:
        courses = pd.read_csv(self.data_dir / "courses.csv", dtype={"id": str})
        published = courses[courses["isPublished"].astype(str).str.lower() == "true"]
        return [Course.model_validate(row) for row in _records(published[[c for c in ("id", "title") if c in published]])]

    def _load_enrollments(self) -> list[Enrollment]:
        df = pd.read_csv(self.data_dir / "enrollments.csv", dtype={"participant": str, "course": str})
        return [Enrollment.model_validate(row) for row in _records(df)]

    def load(self) -> DataSnapshot:
        try:
            snapshot = DataSnapshot(
                enrollments=self._load_enrollments(),
                students=self._load_students(),
                courses=self._load_courses(),
            )
        except (OSError, KeyError, ValueError, ValidationError) as err:
            logger.error(f"Error loading data from {self.data_dir}: {err}")
            return DataSnapshot()

        logger.info(
            f"Loaded {len(snapshot.enrollments):,} enrollments | "
            f"{len(snapshot.students):,} students | {len(snapshot.courses):,} published courses"
        )
        return snapshot
