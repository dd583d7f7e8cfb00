import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import torch
from tqdm.auto import tqdm

from course_recommender.data.preprocess import InteractionMatrices, normalize_ratings
from course_recommender.data.schemas import ModelMetadata, ModelMetrics, TrainingDataStats
from course_recommender.engine.errors import InsufficientData, OptimizationFailure, TrainingCancelled
from course_recommender.engine.losses import cofi_cost
from course_recommender.engine.metrics import matrix_density, observed_rmse
from course_recommender.engine.state import ModelState
from course_recommender.models.mf import CollaborativeFiltering
from course_recommender.utils.config import TrainingOptions
from course_recommender.utils.logger import setup_logger

logger = setup_logger(__name__)

MODEL_VERSION = "1.0.0"


@dataclass(frozen=True)
class TrainingRun:
    state: ModelState
    loss_history: list[tuple[int, float]]  # (iteration, loss) sampled every log_interval


def train_cofi(
    matrices: InteractionMatrices,
    options: Optional[TrainingOptions] = None,
    *,
    total_users: Optional[int] = None,
    total_courses: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: bool = True,
) -> TrainingRun:
    """
    Train collaborative-filtering factors on a (courses × users) rating matrix
    with full-batch Adam.

    Every intermediate tensor (Y, R, Ynorm, optimiser moments) lives only in this
    call; only the detached X, W, b and Ymean leave it inside the returned state.

    Args:
        matrices: Output of `InteractionMatrixBuilder.process()`.
        options: Hyper-parameters; defaults to `TrainingOptions()`.
        total_users / total_courses: Snapshot sizes recorded in the metadata,
            defaulting to the matrix dimensions.
        cancel_event: When set between two iterations the run aborts with
            `TrainingCancelled`. Without one the loop always runs to completion.
        progress: Show a tqdm progress bar.
    """
    options = options or TrainingOptions()
    num_courses, num_users = matrices.shape
    if num_courses == 0 or num_users == 0:
        raise InsufficientData("Not enough data available to train the model.")

    Y = torch.as_tensor(matrices.Y, dtype=torch.float32)
    R = torch.as_tensor(matrices.R, dtype=torch.float32)

    logger.info("Normalizing matrix...")
    Ynorm, Ymean = normalize_ratings(Y, R, epsilon=options.epsilon)

    logger.info(
        f"Training model with {num_users} users, {num_courses} courses, {options.num_features} features"
    )
    model = CollaborativeFiltering(
        num_users,
        num_courses,
        options.num_features,
        init_std=options.init_std,
        seed=options.seed,
    )
    # Plain Adam: the regularisation lives in the loss and must skip the bias
    optimiser = torch.optim.Adam(model.parameters(), lr=options.learning_rate)

    loss_history: list[tuple[int, float]] = []
    loss_value = math.nan
    try:
        for iteration in tqdm(range(options.iterations), desc="Training", unit="iter", disable=not progress):
            if cancel_event is not None and cancel_event.is_set():
                raise TrainingCancelled(f"Training cancelled at iteration {iteration}")

            predictions = model()
            loss = cofi_cost(predictions, model.X, model.W, Ynorm, R, options.lambda_)

            optimiser.zero_grad(set_to_none=True)
            loss.backward()
            optimiser.step()

            loss_value = loss.item()
            if not math.isfinite(loss_value):
                raise OptimizationFailure(f"Loss diverged to {loss_value} at iteration {iteration}")
            if iteration % options.log_interval == 0:
                loss_history.append((iteration, loss_value))
                logger.info(f"Training loss at iteration {iteration}: {loss_value:.1f}")
    except RuntimeError as err:  # e.g. allocator exhaustion inside autograd
        raise OptimizationFailure(f"Optimization failed: {err}") from err

    with torch.no_grad():
        X = model.X.detach().clone()
        W = model.W.detach().clone()
        b = model.b.detach().clone()
        final_predictions = X @ W.T + b + Ymean
        rmse = observed_rmse(final_predictions, Y, R)

    metadata = ModelMetadata(
        last_trained_at=datetime.now(timezone.utc),
        version=MODEL_VERSION,
        training_data_stats=TrainingDataStats(
            total_users=total_users if total_users is not None else num_users,
            total_courses=total_courses if total_courses is not None else num_courses,
            total_enrollments=matrices.num_enrollments,
        ),
        model_metrics=ModelMetrics(
            matrix_density=matrix_density(matrices.R),
            factorization_dimensions=options.num_features,
            final_loss=loss_value,
            train_rmse=rmse,
        ),
    )
    logger.info(f"Training completed | final loss = {loss_value:.4f} | observed RMSE = {rmse:.4f}")

    state = ModelState(
        X=X,
        W=W,
        b=b,
        Ymean=Ymean.detach().clone(),
        users=matrices.users,
        courses=matrices.courses,
        metadata=metadata,
    )
    return TrainingRun(state=state, loss_history=loss_history)
