"""
Planificador de workflows.
Decide qué pasos ejecutar para un pedido. Función pura: no toca disco ni red.
"""
from typing import List

from ..domain.models import (
    AudioSource,
    Classification,
    MediaRequest,
    Urgency,
    VisualStyle,
    WorkflowPlan,
    WorkflowStep,
)

SKIPPABLE_STEPS = [WorkflowStep.AI_BACKGROUND, WorkflowStep.QUALITY_OPTIMIZATION]


def classify(step_count: int) -> Classification:
    """Clasificación orientativa según la cantidad de pasos."""
    if step_count > 5:
        return Classification.COMPREHENSIVE
    if step_count > 3:
        return Classification.MODERATE
    return Classification.SIMPLE


class WorkflowPlanner:
    """Arma la lista ordenada de pasos para un MediaRequest."""

    def plan(self, request: MediaRequest) -> WorkflowPlan:
        steps: List[WorkflowStep] = [WorkflowStep.LOAD_ARTIST_DATA]

        if request.audio_source == AudioSource.UPLOADED:
            steps.append(WorkflowStep.PROCESS_UPLOADED_AUDIO)
        else:
            steps.append(WorkflowStep.ACQUIRE_REMOTE_AUDIO)

        steps += [WorkflowStep.GENERATE_VISUALS, WorkflowStep.BUILD_LAYOUT]

        if request.visual_style == VisualStyle.ENHANCED or request.include_ai_background:
            steps.append(WorkflowStep.AI_BACKGROUND)

        steps.append(WorkflowStep.COMPOSE_VIDEO)

        if request.urgency == Urgency.LOW:
            steps.append(WorkflowStep.QUALITY_OPTIMIZATION)

        return WorkflowPlan(
            steps=steps,
            classification=classify(len(steps)),
            skippable_steps=[step for step in SKIPPABLE_STEPS if step in steps],
        )
