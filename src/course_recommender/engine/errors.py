"""Failure taxonomy of the recommendation engine."""


class RecommenderError(Exception):
    """Base class; `kind` is the stable name reported in training results."""
    kind = "RecommenderError"


class InsufficientData(RecommenderError):
    kind = "InsufficientData"


class ModelNotTrained(RecommenderError):
    kind = "ModelNotTrained"

    def __init__(self, message: str = "Model not trained yet"):
        super().__init__(message)


class UserNotFound(RecommenderError):
    kind = "UserNotFound"

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found in training data")
        self.user_id = user_id


class CourseNotFound(RecommenderError):
    kind = "CourseNotFound"

    def __init__(self, course_id: str):
        super().__init__(f"Course {course_id} not found in training data")
        self.course_id = course_id


class CorruptedModel(RecommenderError):
    kind = "CorruptedModel"


class OptimizationFailure(RecommenderError):
    kind = "OptimizationFailure"


class TrainingInProgress(RecommenderError):
    kind = "TrainingInProgress"

    def __init__(self, message: str = "Model is already training"):
        super().__init__(message)


class TrainingCancelled(RecommenderError):
    kind = "TrainingCancelled"
