from datetime import datetime
from typing import Optional

from course_recommender.data.sources import DataSource
from course_recommender.data.schemas import TrainingResult
from course_recommender.engine.errors import UserNotFound
from course_recommender.service import RecommendationService
from course_recommender.utils.config import Settings, TrainingOptions
from course_recommender.utils.logger import setup_logger

logger = setup_logger(__name__)


def run_pipeline(
    source: DataSource,
    *,
    settings: Optional[Settings] = None,
    sample_user: Optional[str] = None,
    top_k: int = 10,
    now: Optional[datetime] = None,
    **trainer_kwargs,
) -> tuple[RecommendationService, TrainingResult]:
    """End‑to‑end run: load snapshot → build matrices → train → persist → sample recommendations.

    Parameters
    ----------
    source : DataSource
        Reader returning the enrollments, students and published courses.
    settings : Settings, optional
        Model path and retraining thresholds, by default read from the environment.
    sample_user : str, optional
        When given, the top-K recommendations of this user are logged after training.
    top_k : int, optional
        Number of recommendations to log for `sample_user`, by default 10.
    now : datetime, optional
        Reference clock for implicit ratings of unfinished enrollments.
    **trainer_kwargs
        Overrides for `TrainingOptions`, such as 'iterations', 'num_features',
        'learning_rate' and 'lambda_'.

    Returns
    -------
    service : RecommendationService
        Service whose live slot holds the freshly trained model on success.
    result : TrainingResult
        Typed outcome of the training run.
    """
    service = RecommendationService(
        source,
        settings=settings,
        options=TrainingOptions(**trainer_kwargs),
    )
    result = service.train(now=now)
    if not result.success:
        logger.error(f"Pipeline stopped: {result.error} | {result.message}")
        return service, result

    metrics = result.metadata.model_metrics
    logger.info(
        f"Matrix density: {metrics.matrix_density:.4f} | final loss: {metrics.final_loss:.4f} "
        f"| observed RMSE: {metrics.train_rmse:.4f}"
    )

    if sample_user is not None:
        try:
            recommendations = service.get_recommendations(sample_user, top_k)
        except UserNotFound as err:
            logger.warning(str(err))
        else:
            logger.info(f"Top-{top_k} recommendations for {sample_user}:")
            for rec in recommendations:
                logger.info(f"  {rec.course_id}: {rec.predicted_rating:.3f}")

    return service, result
