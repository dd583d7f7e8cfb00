"""Durable snapshot of a trained model: flat parameter arrays, shapes and index maps."""
import os
import tempfile
from math import prod
from pathlib import Path

import torch
from pydantic import BaseModel, ValidationError

from course_recommender.data.preprocess import IndexMap
from course_recommender.data.schemas import ModelMetadata
from course_recommender.engine.errors import CorruptedModel
from course_recommender.engine.state import ModelState
from course_recommender.utils.logger import setup_logger

logger = setup_logger(__name__)


class ModelRecord(BaseModel):
    X: list[float]
    W: list[float]
    b: list[float]
    Ymean: list[float]
    X_shape: list[int]
    W_shape: list[int]
    b_shape: list[int]
    Ymean_shape: list[int]
    user_to_idx: list[tuple[str, int]]
    course_to_idx: list[tuple[str, int]]
    idx_to_user: list[tuple[int, str]]
    idx_to_course: list[tuple[int, str]]
    metadata: ModelMetadata

    @classmethod
    def from_state(cls, state: ModelState) -> "ModelRecord":
        return cls(
            X=state.X.flatten().tolist(),
            W=state.W.flatten().tolist(),
            b=state.b.flatten().tolist(),
            Ymean=state.Ymean.flatten().tolist(),
            X_shape=list(state.X.shape),
            W_shape=list(state.W.shape),
            b_shape=list(state.b.shape),
            Ymean_shape=list(state.Ymean.shape),
            user_to_idx=state.users.id_to_idx_pairs(),
            course_to_idx=state.courses.id_to_idx_pairs(),
            idx_to_user=state.users.idx_to_id_pairs(),
            idx_to_course=state.courses.idx_to_id_pairs(),
            metadata=state.metadata,
        )

    def to_state(self) -> ModelState:
        """Rebuild the servable state; raises ValueError on any inconsistency."""
        def _tensor(values: list[float], shape: list[int]) -> torch.Tensor:
            if len(shape) != 2 or min(shape) < 0 or prod(shape) != len(values):
                raise ValueError(f"{len(values)} values cannot fill shape {shape}")
            return torch.tensor(values, dtype=torch.float32).reshape(shape)

        return ModelState(
            X=_tensor(self.X, self.X_shape),
            W=_tensor(self.W, self.W_shape),
            b=_tensor(self.b, self.b_shape),
            Ymean=_tensor(self.Ymean, self.Ymean_shape),
            users=IndexMap.from_pairs(self.user_to_idx, self.idx_to_user),
            courses=IndexMap.from_pairs(self.course_to_idx, self.idx_to_course),
            metadata=self.metadata,
        )


def save_model_state(state: ModelState, path: Path | str) -> Path:
    """Write the snapshot atomically; a failed write leaves any previous file intact."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = ModelRecord.from_state(state).model_dump_json()

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Model saved to {path}")
    return path


def load_model_state(path: Path | str) -> ModelState:
    """Read a snapshot written by `save_model_state`.

    Raises:
        CorruptedModel: The file is missing, unreadable, malformed or inconsistent.
    """
    path = Path(path)
    try:
        record = ModelRecord.model_validate_json(path.read_text(encoding="utf-8"))
        state = record.to_state()
    except FileNotFoundError as err:
        raise CorruptedModel(f"No model found at {path}") from err
    except (OSError, ValidationError, ValueError) as err:
        raise CorruptedModel(f"Model at {path} is corrupted: {err}") from err

    logger.info(f"Model loaded from {path}")
    return state
