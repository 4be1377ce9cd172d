"""Step definition table and prerequisite checks."""

import itertools

import pytest

from vidblog.orchestrator.steps import (
    STEP_DEFINITIONS,
    all_definitions,
    can_execute,
    get_definition,
    is_valid_step,
)
from vidblog.schemas.workflow import StepStatus, Workflow


def test_definitions_cover_seven_steps_in_order():
    definitions = all_definitions()
    assert [d.step for d in definitions] == [1, 2, 3, 4, 5, 6, 7]
    assert definitions[0].name == "Download Video"
    assert definitions[5].prerequisites == (3, 4)


def test_prerequisites_only_point_backwards():
    for definition in STEP_DEFINITIONS.values():
        assert all(p < definition.step for p in definition.prerequisites)


@pytest.mark.parametrize("step,expected", [(0, False), (1, True), (7, True), (8, False), (True, False), ("3", False)])
def test_is_valid_step(step, expected):
    assert is_valid_step(step) is expected


def test_get_definition_unknown_step():
    assert get_definition(9) is None


def test_unknown_step_is_never_executable():
    check = can_execute(Workflow(video_source="x"), 9)
    assert not check.executable


@pytest.mark.parametrize("step", range(1, 8))
def test_executable_iff_every_prerequisite_completed(step):
    prerequisites = get_definition(step).prerequisites
    for statuses in itertools.product(list(StepStatus), repeat=len(prerequisites)):
        workflow = Workflow(video_source="x")
        for prereq, status in zip(prerequisites, statuses):
            workflow.step_statuses[prereq] = status

        check = can_execute(workflow, step)

        expected_missing = [p for p, s in zip(prerequisites, statuses) if s != StepStatus.completed]
        assert check.executable == (not expected_missing)
        assert check.missing == sorted(expected_missing)


def test_skipped_prerequisite_does_not_count():
    workflow = Workflow(video_source="x")
    workflow.step_statuses[3] = StepStatus.completed
    workflow.step_statuses[4] = StepStatus.skipped

    check = can_execute(workflow, 6)

    assert not check.executable
    assert check.missing == [4]


def test_workflow_requires_all_seven_step_keys():
    with pytest.raises(ValueError):
        Workflow(video_source="x", step_statuses={1: StepStatus.pending})
