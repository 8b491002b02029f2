"""Error taxonomy shared across the curation pipeline."""


class PipelineError(Exception):
    """Base class for every error the pipeline surfaces to the operator."""

    retryable = False


class InvalidQuery(PipelineError):
    """Empty or malformed keyword input. Raised before any network call."""


class UpstreamUnavailable(PipelineError):
    """A single search page, scrape, generation or classifier call failed."""

    retryable = True


class MalformedGenerationOutput(PipelineError):
    """A model response did not decode to the expected structure."""


class InsufficientData(PipelineError):
    """Training was requested with fewer records than the volume threshold."""


class TrainingInProgress(PipelineError):
    """A train request is already outstanding for this session."""


class SelectionOutOfBounds(PipelineError):
    """Generation entry requested with too few or too many relevant records."""


class NoExcerptsExtracted(PipelineError):
    """No selected article yielded a single excerpt."""


class VersionCountOutOfBounds(PipelineError):
    """Requested number of draft versions is outside the allowed range."""


class GenerationBatchFailed(PipelineError):
    """One of the draft generation calls failed, so the whole round is void."""

    retryable = True


class DraftAlreadySelected(PipelineError):
    """A different draft was chosen after the round was already settled."""


class InvalidTransition(PipelineError):
    """The requested phase change is not allowed from the current phase."""
