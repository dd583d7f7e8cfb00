import numpy as np
import pytest
import torch

from course_recommender.data.implicit_rating import generate_implicit_rating
from course_recommender.data.preprocess import IndexMap, InteractionMatrixBuilder, normalize_ratings
from course_recommender.data.schemas import Course, Student

from conftest import NOW, make_enrollment


def test_index_maps_cover_every_student_and_course(matrices, snapshot):
    assert sorted(matrices.users.ids) == sorted(s.id for s in snapshot.students)
    assert sorted(matrices.courses.ids) == sorted(c.id for c in snapshot.courses)
    assert matrices.shape == (4, 5)


def test_index_maps_are_bijective(matrices):
    for index_map in (matrices.users, matrices.courses):
        assert sorted(index_map.index_of(i) for i in index_map.ids) == list(range(len(index_map)))
        for idx in range(len(index_map)):
            assert index_map.index_of(index_map.id_of(idx)) == idx


def test_matrices_hold_implicit_ratings_on_observed_cells(matrices, snapshot):
    assert matrices.R.sum() == len(snapshot.enrollments)
    for enrollment in snapshot.enrollments:
        c = matrices.courses.index_of(enrollment.course_id)
        u = matrices.users.index_of(enrollment.participant_id)
        assert matrices.R[c, u] == 1
        assert matrices.Y[c, u] == pytest.approx(generate_implicit_rating(enrollment, NOW))


def test_cold_user_and_course_are_all_zero(matrices):
    cold_user = matrices.users.index_of("u5")
    cold_course = matrices.courses.index_of("c4")
    assert not matrices.R[:, cold_user].any()
    assert not matrices.Y[:, cold_user].any()
    assert not matrices.R[cold_course].any()


def test_enrollments_outside_the_universe_are_skipped():
    enrollments = [
        make_enrollment("u1", "c1", 50),
        make_enrollment("ghost", "c1", 50),
        make_enrollment("u1", "unpublished", 50),
    ]
    matrices = InteractionMatrixBuilder(
        enrollments, [Student(id="u1")], [Course(id="c1")], now=NOW
    ).process()
    assert matrices.R.sum() == 1
    assert matrices.num_enrollments == 3


def test_duplicate_identifiers_collapse_into_one_index():
    index_map = IndexMap.fit(["b", "a", "b"])
    assert index_map.ids == ["a", "b"]


def test_index_map_from_pairs_rejects_inconsistent_directions():
    with pytest.raises(ValueError):
        IndexMap.from_pairs([("a", 0), ("b", 1)], [(0, "b"), (1, "a")])
    with pytest.raises(ValueError):
        IndexMap.from_pairs([("a", 0), ("b", 2)], [(0, "a"), (2, "b")])


def test_normalization_masks_unobserved_cells():
    R = torch.tensor([[1.0, 0.0, 1.0], [0.0, 0.0, 0.0]])
    Y = torch.tensor([[4.0, 9.0, 2.0], [7.0, 7.0, 7.0]])  # placeholders are garbage on purpose

    Ynorm, Ymean = normalize_ratings(Y, R)

    assert Ymean.shape == (2, 1)
    assert Ymean[0, 0].item() == pytest.approx(3.0)
    assert torch.all(Ynorm[R == 0] == 0)
    assert Ynorm[0, 0].item() == pytest.approx(1.0)
    assert Ynorm[0, 2].item() == pytest.approx(-1.0)


def test_course_without_enrollments_has_finite_zero_mean(matrices):
    Ynorm, Ymean = normalize_ratings(torch.as_tensor(matrices.Y), torch.as_tensor(matrices.R))
    cold_course = matrices.courses.index_of("c4")
    assert np.isfinite(Ymean.numpy()).all()
    assert Ymean[cold_course, 0].item() == pytest.approx(0.0)
