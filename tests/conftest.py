from datetime import datetime, timedelta, timezone

import pytest
import torch

from course_recommender.data.preprocess import IndexMap, InteractionMatrixBuilder
from course_recommender.data.schemas import (
    Course,
    Enrollment,
    ModelMetadata,
    ModelMetrics,
    Student,
    TrainingDataStats,
)
from course_recommender.data.sources import DataSnapshot, InMemoryDataSource
from course_recommender.engine.state import ModelState
from course_recommender.engine.trainer import train_cofi
from course_recommender.utils.config import Settings, TrainingOptions

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_enrollment(
    user: str,
    course: str,
    progress: float,
    *,
    completed: bool = False,
    quiz_score: float | None = None,
    started_days_ago: float = 60,
    duration_days: float | None = None,
) -> Enrollment:
    started_at = NOW - timedelta(days=started_days_ago)
    return Enrollment(
        participant_id=user,
        course_id=course,
        progress=progress,
        completed=completed,
        has_passed_quiz=quiz_score is not None,
        quiz_score=quiz_score,
        started_at=started_at,
        completed_at=started_at + timedelta(days=duration_days) if duration_days is not None else None,
    )


def make_metadata(num_users: int, num_courses: int, num_features: int) -> ModelMetadata:
    return ModelMetadata(
        last_trained_at=NOW,
        training_data_stats=TrainingDataStats(
            total_users=num_users, total_courses=num_courses, total_enrollments=0
        ),
        model_metrics=ModelMetrics(matrix_density=0.0, factorization_dimensions=num_features),
    )


def make_state(X: list[list[float]], W: list[list[float]], b: list[float], Ymean: list[float]) -> ModelState:
    """Hand-built state with users u0.. and courses c0.. in matrix order."""
    X_t = torch.tensor(X, dtype=torch.float32)
    W_t = torch.tensor(W, dtype=torch.float32)
    return ModelState(
        X=X_t,
        W=W_t,
        b=torch.tensor([b], dtype=torch.float32),
        Ymean=torch.tensor(Ymean, dtype=torch.float32).reshape(-1, 1),
        users=IndexMap([f"u{i}" for i in range(W_t.shape[0])]),
        courses=IndexMap([f"c{i}" for i in range(X_t.shape[0])]),
        metadata=make_metadata(W_t.shape[0], X_t.shape[0], X_t.shape[1]),
    )


@pytest.fixture
def snapshot() -> DataSnapshot:
    """5 students, 4 published courses, 8 enrollments; u5 and c4 have no enrollments."""
    enrollments = [
        make_enrollment("u1", "c1", 100, completed=True, quiz_score=100, duration_days=5),
        make_enrollment("u1", "c2", 40),
        make_enrollment("u2", "c1", 90, completed=True, quiz_score=70, duration_days=45),
        make_enrollment("u2", "c3", 10),
        make_enrollment("u3", "c2", 100, completed=True, duration_days=12),
        make_enrollment("u3", "c3", 60, quiz_score=85),
        make_enrollment("u4", "c1", 20, started_days_ago=3),
        make_enrollment("u4", "c3", 75, completed=True, quiz_score=50, duration_days=20),
    ]
    students = [Student(id=f"u{i}") for i in range(1, 6)]
    courses = [Course(id=f"c{i}") for i in range(1, 5)]
    return DataSnapshot(enrollments=enrollments, students=students, courses=courses)


@pytest.fixture
def source(snapshot) -> InMemoryDataSource:
    return InMemoryDataSource(snapshot)


@pytest.fixture
def options() -> TrainingOptions:
    return TrainingOptions(num_features=5, iterations=200, log_interval=10)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(model_path=tmp_path / "trainedModel.json", data_dir=tmp_path)


@pytest.fixture
def matrices(snapshot):
    return InteractionMatrixBuilder(
        snapshot.enrollments, snapshot.students, snapshot.courses, now=NOW
    ).process()


@pytest.fixture
def training_run(matrices, options):
    return train_cofi(matrices, options, progress=False)


@pytest.fixture
def trained_state(training_run) -> ModelState:
    return training_run.state


@pytest.fixture
def export_dir(tmp_path):
    (tmp_path / "users.csv").write_text(
        "id,role\n"
        "1001,student\n"
        "1002,student\n"
        "9000,instructor\n"
    )
    (tmp_path / "courses.csv").write_text(
        "id,title,isPublished\n"
        "c1,Intro to Python,True\n"
        "c2,Draft course,False\n"
        "c3,Data Analysis,True\n"
    )
    (tmp_path / "enrollments.csv").write_text(
        "participant,course,progress,completed,hasPassedQuizze,QuizzeScore,startedAt,completedAt\n"
        "1001,c1,100,True,True,90,2024-01-01T00:00:00Z,2024-01-10T00:00:00Z\n"
        "1002,c3,35,False,,,2024-02-01T00:00:00Z,\n"
    )
    return tmp_path
