from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
import torch
from sklearn.preprocessing import LabelEncoder

from course_recommender.data.implicit_rating import generate_implicit_rating
from course_recommender.data.schemas import Course, Enrollment, Student


class IndexMap:
    """Bidirectional mapping between external identifiers and dense matrix positions.

    Indices are zero-based and contiguous; both directions are kept consistent.
    """

    def __init__(self, ids: Sequence[str]):
        self._id_to_idx: dict[str, int] = {}
        self._idx_to_id: dict[int, str] = {}
        for idx, external_id in enumerate(ids):
            if external_id in self._id_to_idx:
                raise ValueError(f"Duplicate identifier in index map: {external_id!r}")
            self._id_to_idx[external_id] = idx
            self._idx_to_id[idx] = external_id

    @classmethod
    def fit(cls, ids: Iterable[str]) -> "IndexMap":
        """Encode the identifier universe with a LabelEncoder (sorted, de-duplicated)."""
        values = [str(i) for i in ids]
        if not values:
            return cls([])
        encoder = LabelEncoder()
        encoder.fit(np.asarray(values, dtype=object))
        return cls([str(c) for c in encoder.classes_])

    @classmethod
    def from_pairs(cls, id_to_idx: Iterable[tuple[str, int]], idx_to_id: Iterable[tuple[int, str]]) -> "IndexMap":
        """Rebuild a map from both persisted directions, rejecting inconsistent tables."""
        forward = dict(id_to_idx)
        backward = dict(idx_to_id)
        if len(forward) != len(backward) or sorted(backward) != list(range(len(backward))):
            raise ValueError("Index map is not dense and zero-based")
        for idx, external_id in backward.items():
            if forward.get(external_id) != idx:
                raise ValueError(f"Index map directions disagree for {external_id!r}")
        return cls([backward[idx] for idx in range(len(backward))])

    def index_of(self, external_id: str) -> Optional[int]:
        return self._id_to_idx.get(external_id)

    def id_of(self, idx: int) -> str:
        return self._idx_to_id[idx]

    @property
    def ids(self) -> list[str]:
        return [self._idx_to_id[idx] for idx in range(len(self))]

    def id_to_idx_pairs(self) -> list[tuple[str, int]]:
        return list(self._id_to_idx.items())

    def idx_to_id_pairs(self) -> list[tuple[int, str]]:
        return list(self._idx_to_id.items())

    def __len__(self) -> int:
        return len(self._id_to_idx)

    def __contains__(self, external_id: object) -> bool:
        return external_id in self._id_to_idx

    def __eq__(self, other: object) -> bool:
        return isinstance(other, IndexMap) and self._id_to_idx == other._id_to_idx

    def __repr__(self) -> str:
        return f"IndexMap(size={len(self)})"


@dataclass(frozen=True)
class InteractionMatrices:
    """Rating matrix Y and observed-mask R, both shaped (num_courses, num_users)."""
    Y: np.ndarray
    R: np.ndarray
    users: IndexMap
    courses: IndexMap
    num_enrollments: int

    @property
    def shape(self) -> tuple[int, int]:
        return self.Y.shape


class InteractionMatrixBuilder:
    """Assemble Y and R from a point-in-time snapshot of students, courses and enrollments.

    Parameters
    ----------
    enrollments : Sequence[Enrollment]
        Every enrollment row of the snapshot.
    students : Sequence[Student]
        Student universe; each becomes a column even without enrollments.
    courses : Sequence[Course]
        Published course universe; each becomes a row even without enrollments.
    now : datetime, optional
        Reference clock forwarded to the implicit rating of unfinished enrollments.
    """

    def __init__(
        self,
        enrollments: Sequence[Enrollment],
        students: Sequence[Student],
        courses: Sequence[Course],
        *,
        now: Optional[datetime] = None,
    ):
        self.enrollments = enrollments
        self.students = students
        self.courses = courses
        self.now = now

    def _ratings_frame(self, users: IndexMap, courses: IndexMap) -> pd.DataFrame:
        """One row per enrollment whose user and course both belong to the universes."""
        df = pd.DataFrame(
            {
                "user_id": [e.participant_id for e in self.enrollments],
                "course_id": [e.course_id for e in self.enrollments],
                "rating": [generate_implicit_rating(e, self.now) for e in self.enrollments],
            }
        )
        # Enrollments pointing outside the universes are skipped
        df = df[df.user_id.isin(users.ids) & df.course_id.isin(courses.ids)].copy()
        df["user"] = df.user_id.map(users.index_of).astype(np.int64)
        df["item"] = df.course_id.map(courses.index_of).astype(np.int64)
        return df

    def process(self) -> InteractionMatrices:
        """Run the build → returns the populated matrices and their index maps."""
        users = IndexMap.fit(s.id for s in self.students)
        courses = IndexMap.fit(c.id for c in self.courses)

        Y = np.zeros((len(courses), len(users)), dtype=np.float32)
        R = np.zeros((len(courses), len(users)), dtype=np.float32)

        if self.enrollments:
            df = self._ratings_frame(users, courses)
            # Later rows overwrite earlier duplicates of the same (course, user) cell
            Y[df.item.values, df.user.values] = df.rating.values
            R[df.item.values, df.user.values] = 1.0

        return InteractionMatrices(Y=Y, R=R, users=users, courses=courses, num_enrollments=len(self.enrollments))


def normalize_ratings(
    Y: torch.Tensor,
    R: torch.Tensor,
    epsilon: float = 1e-12,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Mean-centre every course row over its observed cells only.

    Returns ``(Ynorm, Ymean)`` where ``Ymean`` has shape (num_courses, 1) and
    ``Ynorm`` is zero on every cell with ``R == 0``.
    """
    sum_ratings = (Y * R).sum(dim=1, keepdim=True)
    num_ratings = R.sum(dim=1, keepdim=True)
    Ymean = sum_ratings / (num_ratings + epsilon)
    Ynorm = (Y - Ymean) * R
    return Ynorm, Ymean
