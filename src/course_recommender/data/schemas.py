"""Pydantic records exchanged with the data store and returned to the application."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RecommendedAction(str, Enum):
    TRAIN = "train"
    RETRAIN = "retrain"
    UP_TO_DATE = "up_to_date"


class TrainingUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Enrollment(BaseModel):
    """Read-only snapshot of one enrollment row.

    Aliases follow the store's field names so exported documents validate as-is.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    participant_id: str = Field(alias="participant")
    course_id: str = Field(alias="course")
    progress: float = 0.0
    completed: bool = False
    has_passed_quiz: bool = Field(False, alias="hasPassedQuizze")
    quiz_score: Optional[float] = Field(None, alias="QuizzeScore")
    started_at: datetime = Field(alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")


class Student(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str


class Course(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: Optional[str] = None


class Recommendation(BaseModel):
    course_id: str
    predicted_rating: float


class SimilarCourse(BaseModel):
    course_id: str
    similarity: float


class SimilarUser(BaseModel):
    user_id: str
    similarity: float


class TrainingDataStats(BaseModel):
    total_users: int
    total_courses: int
    total_enrollments: int


class ModelMetrics(BaseModel):
    matrix_density: float
    factorization_dimensions: int
    final_loss: Optional[float] = None
    train_rmse: Optional[float] = None


class ModelMetadata(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    last_trained_at: datetime
    version: str = "1.0.0"
    training_data_stats: TrainingDataStats
    model_metrics: ModelMetrics


class TrainingStatus(BaseModel):
    needs_retraining: bool
    last_trained_at: Optional[datetime] = None
    days_since_last_training: Optional[int] = None  # None when no model was ever trained
    new_users_count: int = 0
    new_courses_count: int = 0
    new_enrollments_count: int = 0
    recommended_action: RecommendedAction
    training_urgency: TrainingUrgency


class TrainingResult(BaseModel):
    """Outcome of a training request; `error` names the failure kind when unsuccessful."""
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    loss_history: list[tuple[int, float]] = Field(default_factory=list)
    metadata: Optional[ModelMetadata] = None
