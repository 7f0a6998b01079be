import pytest

from novel_refiner.refinement import pipeline as pipeline_module
from novel_refiner.refinement.pipeline import (
    complete_task_stage,
    create_pipeline,
    mark_processing,
    replace_task,
    start_pipeline,
    update_task_status,
)
from novel_refiner.refinement.report import format_timestamp, generate_report


@pytest.fixture
def clock(monkeypatch):
    ticks = iter([0.0, 10.0, 25.0, 40.0, 41.0, 50.0, 60.0])
    monkeypatch.setattr(pipeline_module, "_now", lambda: next(ticks))


@pytest.fixture
def worked_pipeline(clock):
    pipeline = create_pipeline(
        [
            {"id": "c1", "title": "Dawn", "content": "one"},
            {"id": "c2", "title": "Noon", "content": "two"},
            {"id": "c3", "title": "Dusk", "content": "three"},
        ],
        ["remove-ai-flavor", "enhance-tension"],
    )
    pipeline = start_pipeline(pipeline)                     # t=0
    task = mark_processing(pipeline.tasks[0])               # t=10
    pipeline = replace_task(pipeline, task)
    task = complete_task_stage(task, "one'", pipeline)
    pipeline = replace_task(pipeline, task)
    task = mark_processing(task)                            # t=25, start kept at 10
    pipeline = replace_task(pipeline, task)
    task = complete_task_stage(task, "one''", pipeline)     # t=40
    pipeline = replace_task(pipeline, task)
    failed = update_task_status(mark_processing(pipeline.tasks[1]), "failed", "quota exceeded")  # t=41, t=50
    return replace_task(pipeline, failed)


def test_format_timestamp_is_utc():
    assert format_timestamp(0) == "1970-01-01 00:00:00 UTC"


def test_report_header(worked_pipeline):
    report = generate_report(worked_pipeline)

    assert report.startswith("# Refinement Pipeline Report\n")
    assert f"**Pipeline ID:** {worked_pipeline.id}" in report
    assert "**Status:** running" in report
    assert "**Progress:** 2/6 (33%)" in report
    assert "**Started:** 1970-01-01 00:00:00 UTC" in report
    assert "**Finished:**" not in report.split("## Stages")[0]


def test_report_stages_and_tasks(worked_pipeline):
    report = generate_report(worked_pipeline)

    assert "## Stages\n1. Remove AI flavor\n2. Enhance tension" in report
    assert "### 1. Dawn [completed]" in report
    assert "- **Completed stages:** Remove AI flavor, Enhance tension" in report
    assert "- **Duration:** 30s" in report
    assert "### 2. Noon [failed]" in report
    assert "- **Error:** quota exceeded" in report
    assert "### 3. Dusk [pending]" in report
    assert "- **Completed stages:** none" in report


def test_report_summary(worked_pipeline):
    summary = generate_report(worked_pipeline).split("## Summary")[1]

    assert "- **Total tasks:** 3" in summary
    assert "- **Completed:** 1" in summary
    assert "- **Pending:** 1" in summary
    assert "- **Failed:** 1" in summary


def test_report_section_order(worked_pipeline):
    report = generate_report(worked_pipeline)
    positions = [report.index(h) for h in ("## Stages", "## Tasks", "## Summary")]
    assert positions == sorted(positions)


def test_report_is_deterministic(worked_pipeline):
    assert generate_report(worked_pipeline) == generate_report(worked_pipeline)


def test_empty_pipeline_report():
    report = generate_report(create_pipeline([]))

    assert "**Progress:** 0/0 (0%)" in report
    assert "No tasks." in report
    assert "- **Total tasks:** 0" in report
