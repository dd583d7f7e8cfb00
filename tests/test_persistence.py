import json

import pytest

from course_recommender.engine.errors import CorruptedModel
from course_recommender.engine.persistence import load_model_state, save_model_state
from course_recommender.engine.predictor import predict_rating


def test_round_trip_reproduces_every_prediction(trained_state, tmp_path):
    path = save_model_state(trained_state, tmp_path / "model.json")
    restored = load_model_state(path)

    assert restored.users == trained_state.users
    assert restored.courses == trained_state.courses
    assert restored.metadata == trained_state.metadata
    for user_id in trained_state.users.ids:
        for course_id in trained_state.courses.ids:
            assert predict_rating(restored, user_id, course_id) == pytest.approx(
                predict_rating(trained_state, user_id, course_id), abs=1e-6
            )


def test_record_layout(trained_state, tmp_path):
    path = save_model_state(trained_state, tmp_path / "model.json")
    record = json.loads(path.read_text())

    assert record["X_shape"] == [4, trained_state.num_features]
    assert len(record["X"]) == 4 * trained_state.num_features
    assert record["b_shape"] == [1, 5]
    assert record["Ymean_shape"] == [4, 1]
    assert {tuple(pair) for pair in record["idx_to_user"]} == {
        (idx, user_id) for user_id, idx in record["user_to_idx"]
    }


def test_save_leaves_no_temporary_files(trained_state, tmp_path):
    save_model_state(trained_state, tmp_path / "model.json")
    save_model_state(trained_state, tmp_path / "model.json")
    assert [p.name for p in tmp_path.iterdir()] == ["model.json"]


def test_missing_file_is_corrupted_model(tmp_path):
    with pytest.raises(CorruptedModel):
        load_model_state(tmp_path / "absent.json")


def test_malformed_json_is_corrupted_model(tmp_path):
    path = tmp_path / "model.json"
    path.write_text("{not json")
    with pytest.raises(CorruptedModel):
        load_model_state(path)


@pytest.mark.parametrize(
    "field, value",
    [
        ("X", [0.0]),
        ("b_shape", [5, 1]),
        ("X_shape", [-2, -1]),
        ("Ymean_shape", [4]),
        ("idx_to_course", [[0, "c2"], [1, "c1"], [2, "c3"], [3, "c4"]]),
        ("user_to_idx", [["u1", 0]]),
    ],
)
def test_inconsistent_record_is_corrupted_model(trained_state, tmp_path, field, value):
    path = save_model_state(trained_state, tmp_path / "model.json")
    record = json.loads(path.read_text())
    record[field] = value
    path.write_text(json.dumps(record))

    with pytest.raises(CorruptedModel):
        load_model_state(path)


def test_incomplete_record_is_corrupted_model(trained_state, tmp_path):
    path = save_model_state(trained_state, tmp_path / "model.json")
    record = json.loads(path.read_text())
    del record["Ymean"]
    path.write_text(json.dumps(record))

    with pytest.raises(CorruptedModel):
        load_model_state(path)
