"""
Curation phase state machine.

Phases:
    keyword_entry -> labeling -> classifier_assisted -> extracting -> drafting -> finalizing
          ^______________________ reset (from any phase) _______________________|

Transitions are a pure function of (phase, event); guards such as the
volume threshold or the selection bounds are checked by the session
before it emits an event.
"""

from enum import Enum

from src.errors import InvalidTransition


class PipelinePhase(Enum):
    """Exactly one phase is active per session."""
    KEYWORD_ENTRY = "keyword_entry"
    LABELING = "labeling"
    CLASSIFIER_ASSISTED = "classifier_assisted"
    EXTRACTING = "extracting"
    DRAFTING = "drafting"
    FINALIZING = "finalizing"

    @property
    def is_generation(self) -> bool:
        return self in (PipelinePhase.EXTRACTING, PipelinePhase.DRAFTING, PipelinePhase.FINALIZING)


class PhaseEvent(Enum):
    RETRIEVED = "retrieved"
    TRAINED = "trained"
    ENTER_GENERATION = "enter_generation"
    EXCERPTS_READY = "excerpts_ready"
    DRAFT_CHOSEN = "draft_chosen"
    RESET = "reset"


TRANSITIONS: dict[tuple[PipelinePhase, PhaseEvent], PipelinePhase] = {
    (PipelinePhase.KEYWORD_ENTRY, PhaseEvent.RETRIEVED): PipelinePhase.LABELING,
    (PipelinePhase.LABELING, PhaseEvent.TRAINED): PipelinePhase.CLASSIFIER_ASSISTED,
    (PipelinePhase.CLASSIFIER_ASSISTED, PhaseEvent.ENTER_GENERATION): PipelinePhase.EXTRACTING,
    (PipelinePhase.EXTRACTING, PhaseEvent.EXCERPTS_READY): PipelinePhase.DRAFTING,
    (PipelinePhase.DRAFTING, PhaseEvent.DRAFT_CHOSEN): PipelinePhase.FINALIZING,
}


def transition(phase: PipelinePhase, event: PhaseEvent) -> PipelinePhase:
    """Next phase for `event`, or InvalidTransition if the event is not allowed."""
    if event is PhaseEvent.RESET:
        return PipelinePhase.KEYWORD_ENTRY
    try:
        return TRANSITIONS[(phase, event)]
    except KeyError:
        raise InvalidTransition(f"'{event.value}' is not allowed in phase '{phase.value}'") from None


def allowed_events(phase: PipelinePhase) -> set[PhaseEvent]:
    events = {event for (source, event) in TRANSITIONS if source is phase}
    events.add(PhaseEvent.RESET)
    return events
