"""Tests for novel_refiner.quality.metrics."""

import json

import pytest
from pydantic import ValidationError

from novel_refiner.quality.metrics import (
    QualityMetricsRecorder,
    RawQualityScores,
    create_quality_metrics,
    load_scores,
    score_chapter,
)


SCORES = {
    "overall": 75,
    "aiFlavor": 60,
    "coolPointDensity": 0.8,
    "pacing": 70,
    "consistency": 80,
    "repetition": 20,
}


# ---------------------------------------------------------------------------
# RawQualityScores / create_quality_metrics
# ---------------------------------------------------------------------------


class TestCreateQualityMetrics:

    def test_maps_display_names(self):
        metrics = create_quality_metrics(1, SCORES)

        assert metrics.chapter_number == 1
        assert metrics.overall_score == 75
        assert metrics.ai_flavor_score == 60
        assert metrics.cool_point_density == 0.8
        assert metrics.pacing_score == 70
        assert metrics.consistency_score == 80
        assert metrics.repetition_score == 20
        assert metrics.timestamp > 0

    def test_snake_case_input(self):
        raw = RawQualityScores(overall=50, ai_flavor=40, cool_point_density=0.1)
        metrics = create_quality_metrics(2, raw, timestamp=123.0)

        assert metrics.ai_flavor_score == 40
        assert metrics.cool_point_density == 0.1
        assert metrics.timestamp == 123.0

    def test_out_of_range_scores_kept(self):
        metrics = create_quality_metrics(1, {**SCORES, "overall": 140, "pacing": -5})
        assert metrics.overall_score == 140
        assert metrics.pacing_score == -5

    def test_missing_and_malformed_become_none(self):
        metrics = create_quality_metrics(1, {"overall": "n/a", "pacing": None, "consistency": "65"})

        assert metrics.overall_score is None
        assert metrics.pacing_score is None
        assert metrics.consistency_score == 65
        assert metrics.ai_flavor_score is None

    def test_nan_becomes_none(self):
        metrics = create_quality_metrics(1, {"overall": float("nan")})
        assert metrics.overall_score is None

    def test_metrics_are_frozen(self):
        metrics = create_quality_metrics(1, SCORES)
        with pytest.raises(ValidationError):
            metrics.overall_score = 10


def test_score_chapter_uses_scorer():
    seen = []

    def scorer(content):
        seen.append(content)
        return {"overall": len(content)}

    metrics = score_chapter(7, "twelve chars", scorer)

    assert seen == ["twelve chars"]
    assert metrics.chapter_number == 7
    assert metrics.overall_score == 12


# ---------------------------------------------------------------------------
# load_scores
# ---------------------------------------------------------------------------


class TestLoadScores:

    def test_csv(self, tmp_path):
        path = tmp_path / "scores.csv"
        path.write_text(
            "chapter,overall,aiFlavor,coolPointDensity,pacing,consistency,repetition\n"
            "1,70,50,0.6,60,80,10\n"
            "2,55,,0.4,60,80,10\n"
        )

        rows = load_scores(path)

        assert [chapter for chapter, _ in rows] == [1, 2]
        assert rows[0][1].ai_flavor == 50
        assert rows[1][1].ai_flavor is None
        assert rows[1][1].overall == 55

    def test_jsonl(self, tmp_path):
        path = tmp_path / "scores.jsonl"
        path.write_text("\n".join(json.dumps({"chapter_number": i, "overall": 40 + i}) for i in (3, 4)))

        rows = load_scores(path)
        assert [(c, s.overall) for c, s in rows] == [(3, 43), (4, 44)]

    def test_missing_chapter_column(self, tmp_path):
        path = tmp_path / "scores.csv"
        path.write_text("overall\n50\n")
        with pytest.raises(ValueError, match="chapter"):
            load_scores(path)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "scores.xlsx"
        path.write_bytes(b"")
        with pytest.raises(ValueError):
            load_scores(path)


# ---------------------------------------------------------------------------
# QualityMetricsRecorder
# ---------------------------------------------------------------------------


class TestRecorder:

    def _metrics(self, chapter, ts):
        return create_quality_metrics(chapter, SCORES, timestamp=ts)

    def test_record_and_latest(self):
        recorder = QualityMetricsRecorder()
        assert recorder.latest() is None

        recorder.record(self._metrics(1, 1.0))
        recorder.record(self._metrics(2, 2.0))

        assert len(recorder) == 2
        assert recorder.latest().chapter_number == 2
        assert [m.chapter_number for m in recorder.window(1)] == [2]
        assert recorder.window(0) == []

    def test_cap_drops_oldest(self):
        recorder = QualityMetricsRecorder(max_history=3)
        for i in range(1, 6):
            recorder.record(self._metrics(i, float(i)))

        assert [m.chapter_number for m in recorder.history] == [3, 4, 5]

    def test_history_is_a_copy(self):
        recorder = QualityMetricsRecorder()
        recorder.record(self._metrics(1, 1.0))
        recorder.history.clear()
        assert len(recorder) == 1

    def test_prune_before(self):
        recorder = QualityMetricsRecorder()
        for i in range(1, 5):
            recorder.record(self._metrics(i, float(i)))

        dropped = recorder.prune_before(3.0)

        assert dropped == 2
        assert [m.chapter_number for m in recorder.history] == [3, 4]

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            QualityMetricsRecorder(max_history=0)
