"""Runtime configuration: training hyper-parameters and environment settings."""
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()


class TrainingOptions(BaseModel):
    """Hyper-parameters of a single collaborative-filtering training run."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    num_features: int = Field(50, gt=0)
    learning_rate: float = Field(0.1, gt=0)
    iterations: int = Field(600, gt=0)
    lambda_: float = Field(1.0, ge=0, alias="lambda")
    log_interval: int = Field(20, gt=0)
    seed: int = 1234
    epsilon: float = Field(1e-12, gt=0)  # guards Ymean for courses nobody enrolled in
    init_std: float = Field(0.1, gt=0)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model_path: Path = Path("./trainedModel.json")
    data_dir: Path = Path("./data")
    retrain_threshold_days: int = 7    # retrain every week
    critical_threshold_days: int = 30  # critical if not trained for a month
    min_new_data_threshold: int = 10   # new users/courses/enrollments that trigger retraining

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from COURSE_RECOMMENDER_* environment variables (and a .env file)."""
        env = {
            "model_path": os.getenv("COURSE_RECOMMENDER_MODEL_PATH"),
            "data_dir": os.getenv("COURSE_RECOMMENDER_DATA_DIR"),
            "retrain_threshold_days": os.getenv("COURSE_RECOMMENDER_RETRAIN_THRESHOLD_DAYS"),
            "critical_threshold_days": os.getenv("COURSE_RECOMMENDER_CRITICAL_THRESHOLD_DAYS"),
            "min_new_data_threshold": os.getenv("COURSE_RECOMMENDER_MIN_NEW_DATA_THRESHOLD"),
        }
        return cls(**{key: value for key, value in env.items() if value is not None})
