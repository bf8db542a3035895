"""
Tests for tag affinity and candidate scoring (backend/preference_scorer.py).
"""

import pytest

from preference_scorer import build_tag_affinity, score_tags


def _liked(course_id, rating, tags):
    return {"course_id": course_id, "rating": rating, "tags": tags}


# ── build_tag_affinity ────────────────────────────────────────────────────────

class TestBuildTagAffinity:
    def test_mixed_ratings_cancel_out(self):
        affinity = build_tag_affinity([
            _liked("x", 4, ["A", "B"]),
            _liked("y", 0, ["A"]),
        ])
        assert affinity["A"] == pytest.approx(0.0)
        assert affinity["B"] == pytest.approx(2.0)

    def test_mean_not_sum(self):
        affinity = build_tag_affinity([
            _liked("x", 4, ["ml"]),
            _liked("y", 3, ["ml"]),
        ])
        assert affinity["ml"] == pytest.approx(1.5)

    def test_neutral_rating_contributes_zero(self):
        affinity = build_tag_affinity([_liked("x", 2, ["theory"])])
        assert affinity == {"theory": 0.0}

    def test_unrated_courses_ignored(self):
        affinity = build_tag_affinity([
            _liked("x", -1, ["A"]),
            _liked("y", 4, ["B"]),
        ])
        assert "A" not in affinity
        assert affinity["B"] == pytest.approx(2.0)

    def test_out_of_range_rating_ignored(self, capsys):
        affinity = build_tag_affinity([_liked("x", 9, ["A"])])
        assert affinity == {}
        assert "[WARN]" in capsys.readouterr().err

    def test_duplicate_tags_on_one_course_count_once(self):
        affinity = build_tag_affinity([
            _liked("x", 4, ["A", "A"]),
            _liked("y", 0, ["A"]),
        ])
        assert affinity["A"] == pytest.approx(0.0)

    def test_custom_neutral_rating(self):
        affinity = build_tag_affinity([_liked("x", 4, ["A"])], neutral_rating=3)
        assert affinity["A"] == pytest.approx(1.0)

    def test_empty_history(self):
        assert build_tag_affinity([]) == {}


# ── score_tags ────────────────────────────────────────────────────────────────

class TestScoreTags:
    def test_no_tags_scores_zero(self):
        assert score_tags([], {"A": 2.0}) == 0.0
        assert score_tags(None, {"A": 2.0}) == 0.0

    def test_unknown_tags_count_as_zero(self):
        assert score_tags(["A", "Z"], {"A": 2.0}) == pytest.approx(1.0)

    def test_mean_of_affinities(self):
        assert score_tags(["A", "B"], {"A": 2.0, "B": -1.0}) == pytest.approx(0.5)
