from dataclasses import dataclass

import torch

from course_recommender.data.preprocess import IndexMap
from course_recommender.data.schemas import ModelMetadata


@dataclass(frozen=True, eq=False)
class ModelState:
    """Frozen, servable result of one training run (or one load).

    X is [num_courses, k], W is [num_users, k], b is [1, num_users] and
    Ymean is [num_courses, 1]. The index maps are only meaningful together
    with the tensors they were trained with.
    """
    X: torch.Tensor
    W: torch.Tensor
    b: torch.Tensor
    Ymean: torch.Tensor
    users: IndexMap
    courses: IndexMap
    metadata: ModelMetadata

    def __post_init__(self):
        num_courses, num_users = len(self.courses), len(self.users)
        if self.X.shape[0] != num_courses or self.Ymean.shape != (num_courses, 1):
            raise ValueError("Course dimension does not match the course index map")
        if self.W.shape[0] != num_users or self.b.shape != (1, num_users):
            raise ValueError("User dimension does not match the user index map")
        if self.X.shape[1] != self.W.shape[1]:
            raise ValueError("X and W disagree on the number of latent features")

    @property
    def num_features(self) -> int:
        return self.X.shape[1]

    def predict_matrix(self) -> torch.Tensor:
        """Full de-normalised prediction matrix, shape [num_courses, num_users]."""
        with torch.no_grad():
            return self.X @ self.W.T + self.b + self.Ymean

    def predict_cell(self, course_idx: int, user_idx: int) -> float:
        with torch.no_grad():
            value = self.X[course_idx] @ self.W[user_idx] + self.b[0, user_idx] + self.Ymean[course_idx, 0]
        return float(value)
