"""Read-only serving over a trained `ModelState`."""
from typing import Optional

import numpy as np
import torch
import torch.nn.functional as F

from course_recommender.data.schemas import Recommendation, SimilarCourse, SimilarUser
from course_recommender.engine.errors import CourseNotFound, ModelNotTrained, UserNotFound
from course_recommender.engine.state import ModelState


def _require(state: Optional[ModelState]) -> ModelState:
    if state is None:
        raise ModelNotTrained()
    return state


def _ranked(scores: np.ndarray, top_k: int) -> np.ndarray:
    """Indices sorted by descending score; equal scores keep ascending index order."""
    return np.argsort(-scores, kind="stable")[: max(top_k, 0)]


def recommend_top_k(state: Optional[ModelState], user_id: str, top_k: int = 10) -> list[Recommendation]:
    """Rank every known course for `user_id` by predicted rating and keep the best `top_k`."""
    state = _require(state)
    user_idx = state.users.index_of(user_id)
    if user_idx is None:
        raise UserNotFound(user_id)

    user_predictions = state.predict_matrix()[:, user_idx].numpy()
    return [
        Recommendation(course_id=state.courses.id_of(int(idx)), predicted_rating=float(user_predictions[idx]))
        for idx in _ranked(user_predictions, top_k)
    ]


def predict_rating(state: Optional[ModelState], user_id: str, course_id: str) -> float:
    """Single-cell prediction, computed without materialising the full matrix."""
    state = _require(state)
    user_idx = state.users.index_of(user_id)
    if user_idx is None:
        raise UserNotFound(user_id)
    course_idx = state.courses.index_of(course_id)
    if course_idx is None:
        raise CourseNotFound(course_id)
    return state.predict_cell(course_idx, user_idx)


def _cosine_neighbours(factors: torch.Tensor, idx: int, limit: int) -> list[tuple[int, float]]:
    """Rows ranked by cosine similarity to row `idx`, excluding `idx` itself."""
    with torch.no_grad():
        # Zero-norm rows normalise to zero vectors, i.e. similarity 0
        unit = F.normalize(factors, dim=1)
        similarities = (unit @ unit[idx]).numpy()

    similarities[idx] = -np.inf
    ranked = _ranked(similarities, min(limit, factors.shape[0] - 1))
    return [(int(other), float(similarities[other])) for other in ranked]


def similar_courses(state: Optional[ModelState], course_id: str, limit: int = 5) -> list[SimilarCourse]:
    """Courses whose learned item factors are closest (cosine) to those of `course_id`."""
    state = _require(state)
    course_idx = state.courses.index_of(course_id)
    if course_idx is None:
        raise CourseNotFound(course_id)

    return [
        SimilarCourse(course_id=state.courses.id_of(idx), similarity=similarity)
        for idx, similarity in _cosine_neighbours(state.X, course_idx, limit)
    ]


def similar_users(state: Optional[ModelState], user_id: str, limit: int = 5) -> list[SimilarUser]:
    """Users whose learned preference factors (rows of W) are closest to those of `user_id`."""
    state = _require(state)
    user_idx = state.users.index_of(user_id)
    if user_idx is None:
        raise UserNotFound(user_id)

    return [
        SimilarUser(user_id=state.users.id_of(idx), similarity=similarity)
        for idx, similarity in _cosine_neighbours(state.W, user_idx, limit)
    ]
