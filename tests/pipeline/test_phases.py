import pytest

from src.errors import InvalidTransition
from src.pipeline.phases import PhaseEvent, PipelinePhase, allowed_events, transition


@pytest.mark.parametrize(
    "phase, event, expected",
    [
        (PipelinePhase.KEYWORD_ENTRY, PhaseEvent.RETRIEVED, PipelinePhase.LABELING),
        (PipelinePhase.LABELING, PhaseEvent.TRAINED, PipelinePhase.CLASSIFIER_ASSISTED),
        (PipelinePhase.CLASSIFIER_ASSISTED, PhaseEvent.ENTER_GENERATION, PipelinePhase.EXTRACTING),
        (PipelinePhase.EXTRACTING, PhaseEvent.EXCERPTS_READY, PipelinePhase.DRAFTING),
        (PipelinePhase.DRAFTING, PhaseEvent.DRAFT_CHOSEN, PipelinePhase.FINALIZING),
    ],
)
def test_forward_transitions(phase, event, expected):
    assert transition(phase, event) is expected


@pytest.mark.parametrize("phase", list(PipelinePhase))
def test_reset_returns_to_keyword_entry_from_any_phase(phase):
    assert transition(phase, PhaseEvent.RESET) is PipelinePhase.KEYWORD_ENTRY


def test_classifier_assisted_requires_training():
    with pytest.raises(InvalidTransition):
        transition(PipelinePhase.KEYWORD_ENTRY, PhaseEvent.TRAINED)
    with pytest.raises(InvalidTransition):
        transition(PipelinePhase.LABELING, PhaseEvent.ENTER_GENERATION)


def test_no_backward_transitions():
    with pytest.raises(InvalidTransition):
        transition(PipelinePhase.CLASSIFIER_ASSISTED, PhaseEvent.RETRIEVED)
    with pytest.raises(InvalidTransition):
        transition(PipelinePhase.FINALIZING, PhaseEvent.DRAFT_CHOSEN)


def test_allowed_events_always_include_reset():
    assert allowed_events(PipelinePhase.FINALIZING) == {PhaseEvent.RESET}
    assert allowed_events(PipelinePhase.LABELING) == {PhaseEvent.TRAINED, PhaseEvent.RESET}


def test_generation_phases():
    assert PipelinePhase.DRAFTING.is_generation
    assert not PipelinePhase.CLASSIFIER_ASSISTED.is_generation
