from __future__ import annotations

from mixreel.domain.models import (
    AudioSource,
    Classification,
    MediaRequest,
    Urgency,
    VisualStyle,
    WorkflowStep,
)
from mixreel.workflow.planner import WorkflowPlanner, classify


def test_default_remote_request() -> None:
    plan = WorkflowPlanner().plan(MediaRequest(artist_selector="NEBULA DRIFT", target_duration_seconds=30))

    assert plan.steps == [
        WorkflowStep.LOAD_ARTIST_DATA,
        WorkflowStep.ACQUIRE_REMOTE_AUDIO,
        WorkflowStep.GENERATE_VISUALS,
        WorkflowStep.BUILD_LAYOUT,
        WorkflowStep.COMPOSE_VIDEO,
    ]
    assert plan.classification == Classification.MODERATE
    assert plan.skippable_steps == []


def test_uploaded_audio_replaces_remote_acquisition() -> None:
    request = MediaRequest(audio_source=AudioSource.UPLOADED, uploaded_audio_path="/tmp/mix.wav")
    steps = WorkflowPlanner().plan(request).steps

    assert WorkflowStep.PROCESS_UPLOADED_AUDIO in steps
    assert WorkflowStep.ACQUIRE_REMOTE_AUDIO not in steps


def test_enhanced_and_low_urgency_add_optional_steps() -> None:
    request = MediaRequest(visual_style=VisualStyle.ENHANCED, urgency=Urgency.LOW)
    plan = WorkflowPlanner().plan(request)

    assert plan.steps.index(WorkflowStep.AI_BACKGROUND) == plan.steps.index(WorkflowStep.BUILD_LAYOUT) + 1
    assert plan.steps[-1] == WorkflowStep.QUALITY_OPTIMIZATION
    assert plan.classification == Classification.COMPREHENSIVE
    assert plan.skippable_steps == [WorkflowStep.AI_BACKGROUND, WorkflowStep.QUALITY_OPTIMIZATION]


def test_ai_background_flag_without_enhanced_style() -> None:
    plan = WorkflowPlanner().plan(MediaRequest(include_ai_background=True))
    assert WorkflowStep.AI_BACKGROUND in plan.steps


def test_every_plan_starts_with_artist_and_ends_with_video() -> None:
    planner = WorkflowPlanner()
    for style in VisualStyle:
        for urgency in Urgency:
            steps = planner.plan(MediaRequest(visual_style=style, urgency=urgency)).steps
            assert steps[0] == WorkflowStep.LOAD_ARTIST_DATA
            assert WorkflowStep.COMPOSE_VIDEO in steps
            assert len(steps) == len(set(steps))


def test_classify_thresholds() -> None:
    assert classify(3) == Classification.SIMPLE
    assert classify(4) == Classification.MODERATE
    assert classify(5) == Classification.MODERATE
    assert classify(6) == Classification.COMPREHENSIVE
