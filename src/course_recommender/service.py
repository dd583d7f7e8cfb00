"""Application-facing recommendation service.

Holds the single live model slot. A training run builds a brand-new
`ModelState`, persists it, and only then swaps it into the slot, so readers
never observe half-trained parameters. At most one training run is in flight
per service instance; a concurrent request is rejected.
"""
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from course_recommender.data.preprocess import InteractionMatrixBuilder
from course_recommender.data.schemas import (
    ModelMetadata,
    Recommendation,
    RecommendedAction,
    SimilarCourse,
    SimilarUser,
    TrainingResult,
    TrainingStatus,
    TrainingUrgency,
)
from course_recommender.data.sources import DataSnapshot, DataSource
from course_recommender.engine import predictor
from course_recommender.engine.errors import (
    CorruptedModel,
    InsufficientData,
    ModelNotTrained,
    RecommenderError,
    TrainingInProgress,
)
from course_recommender.engine.persistence import load_model_state, save_model_state
from course_recommender.engine.state import ModelState
from course_recommender.engine.trainer import TrainingRun, train_cofi
from course_recommender.utils.config import Settings, TrainingOptions
from course_recommender.utils.logger import setup_logger

logger = setup_logger(__name__)


class RecommendationService:
    def __init__(
        self,
        source: DataSource,
        *,
        settings: Optional[Settings] = None,
        options: Optional[TrainingOptions] = None,
        progress: bool = True,
    ):
        self.source = source
        self.settings = settings or Settings.from_env()
        self.options = options or TrainingOptions()
        self.progress = progress

        self._state: Optional[ModelState] = None
        self._train_lock = threading.Lock()

    @property
    def model_path(self) -> Path:
        return self.settings.model_path

    @property
    def state(self) -> Optional[ModelState]:
        return self._state

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(
        self,
        *,
        now: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> TrainingResult:
        """Run one full training cycle and report a typed result instead of raising."""
        if not self._train_lock.acquire(blocking=False):
            err = TrainingInProgress()
            logger.warning(f"Training request rejected: {err}")
            return TrainingResult(success=False, error=err.kind, message=str(err))

        try:
            run = self._train_and_save(now=now, cancel_event=cancel_event)
        except RecommenderError as err:
            logger.error(f"Training failed ({err.kind}): {err}")
            return TrainingResult(success=False, error=err.kind, message=str(err))
        except Exception as err:  # live slot stays untouched
            logger.exception(f"Training failed: {err}")
            return TrainingResult(success=False, error=type(err).__name__, message=str(err))
        finally:
            self._train_lock.release()

        return TrainingResult(success=True, loss_history=run.loss_history, metadata=run.state.metadata)

    def _train_and_save(self, *, now: Optional[datetime], cancel_event: Optional[threading.Event]) -> TrainingRun:
        logger.info("Loading data...")
        snapshot = self.source.load()
        if snapshot.is_empty():
            raise InsufficientData("Not enough data available to train the model.")

        logger.info("Creating user-item matrix...")
        matrices = InteractionMatrixBuilder(
            snapshot.enrollments,
            snapshot.students,
            snapshot.courses,
            now=now,
        ).process()

        run = train_cofi(
            matrices,
            self.options,
            total_users=len(snapshot.students),
            total_courses=len(snapshot.courses),
            cancel_event=cancel_event,
            progress=self.progress,
        )
        save_model_state(run.state, self.model_path)
        self._state = run.state
        return run

    def train_model(self, **kwargs) -> bool:
        """Boolean façade over `train`; the failure reason is only logged."""
        return self.train(**kwargs).success

    # ------------------------------------------------------------------
    # Serving
    # ------------------------------------------------------------------

    def get_recommendations(self, user_id: str, top_k: int = 10) -> list[Recommendation]:
        return predictor.recommend_top_k(self._state, user_id, top_k)

    def predict_rating(self, user_id: str, course_id: str) -> float:
        return predictor.predict_rating(self._state, user_id, course_id)

    def get_similar_courses(self, course_id: str, limit: int = 5) -> list[SimilarCourse]:
        return predictor.similar_courses(self._state, course_id, limit)

    def get_similar_users(self, user_id: str, limit: int = 5) -> list[SimilarUser]:
        return predictor.similar_users(self._state, user_id, limit)

    # ------------------------------------------------------------------
    # Persistence & lifecycle
    # ------------------------------------------------------------------

    def save_model(self) -> Path:
        state = self._state
        if state is None:
            raise ModelNotTrained("No trained model to save")
        return save_model_state(state, self.model_path)

    def load_model(self) -> ModelState:
        """Replace the live slot with the persisted model; a broken file leaves the slot as it was."""
        state = load_model_state(self.model_path)
        self._state = state
        return state

    def is_model_trained(self) -> bool:
        if self._state is not None:
            return True
        try:
            self.load_model()
        except CorruptedModel as err:
            logger.info(f"No servable model: {err}")
            return False
        return True

    def clear_model(self) -> None:
        self._state = None
        logger.info("Model cleared from memory")

    def get_training_status(self, now: Optional[datetime] = None) -> TrainingStatus:
        """Compare the current data snapshot with the live (or persisted) model's metadata."""
        now = now or datetime.now(timezone.utc)
        try:
            snapshot = self.source.load()
            if not self.is_model_trained():
                return TrainingStatus(
                    needs_retraining=True,
                    new_users_count=len(snapshot.students),
                    new_courses_count=len(snapshot.courses),
                    new_enrollments_count=len(snapshot.enrollments),
                    recommended_action=RecommendedAction.TRAIN,
                    training_urgency=TrainingUrgency.CRITICAL,
                )
            state = self._state
            if state is None:
                raise ModelNotTrained("Model was cleared while computing status")
            return self._status_from_metadata(snapshot, state.metadata, now)
        except Exception as err:
            logger.error(f"Error getting training status: {err}")
            return TrainingStatus(
                needs_retraining=True,
                recommended_action=RecommendedAction.TRAIN,
                training_urgency=TrainingUrgency.CRITICAL,
            )

    def _status_from_metadata(self, snapshot: DataSnapshot, metadata: ModelMetadata, now: datetime) -> TrainingStatus:
        trained_at = metadata.last_trained_at
        if trained_at.tzinfo is None:
            trained_at = trained_at.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        days = int((now - trained_at).total_seconds() // (60 * 60 * 24))

        stats = metadata.training_data_stats
        new_users = len(snapshot.students) - stats.total_users
        new_courses = len(snapshot.courses) - stats.total_courses
        new_enrollments = len(snapshot.enrollments) - stats.total_enrollments

        threshold = self.settings.min_new_data_threshold
        significant = new_users >= threshold or new_courses >= threshold or new_enrollments >= threshold
        stale = days >= self.settings.retrain_threshold_days
        critical = days >= self.settings.critical_threshold_days

        if critical:
            action, urgency = RecommendedAction.RETRAIN, TrainingUrgency.CRITICAL
        elif significant and stale:
            action, urgency = RecommendedAction.RETRAIN, TrainingUrgency.HIGH
        elif significant:
            action, urgency = RecommendedAction.RETRAIN, TrainingUrgency.MEDIUM
        elif stale:
            action, urgency = RecommendedAction.RETRAIN, TrainingUrgency.LOW
        else:
            action, urgency = RecommendedAction.UP_TO_DATE, TrainingUrgency.LOW

        return TrainingStatus(
            needs_retraining=significant or stale,
            last_trained_at=metadata.last_trained_at,
            days_since_last_training=days,
            new_users_count=new_users,
            new_courses_count=new_courses,
            new_enrollments_count=new_enrollments,
            recommended_action=action,
            training_urgency=urgency,
        )
