"""
Curation session.

Owns one operator's working state (articles, candidate pool, excerpts,
drafts) and drives it through the phase machine. Network calls run
outside the session lock; results are applied only if no reset happened
in the meantime, so a reset can be issued at any point.
"""

import logging
import threading
from dataclasses import replace

from config import (
    DEFAULT_CLASSIFIER_THRESHOLD,
    MAX_SELECTION,
    MAX_VERSIONS,
    MIN_CONTENT_LENGTH,
    PAGE_LIMIT,
    RECENCY_HOURS,
    SMART_FILTER_THRESHOLD,
    SNAPSHOT_DIR,
    TRAINING_FEED_LABEL,
    VOLUME_THRESHOLD,
)
from src.analyzers.draft_generator import generate_drafts
from src.analyzers.excerpt_synthesizer import (
    move_excerpt,
    remove_excerpt,
    reorder_excerpt,
    synthesize_excerpts,
)
from src.delivery.exporter import export_dataset
from src.errors import (
    GenerationBatchFailed,
    InsufficientData,
    InvalidTransition,
    NoExcerptsExtracted,
    PipelineError,
    SelectionOutOfBounds,
    TrainingInProgress,
)
from src.filters.relevance_classifier import ClassifierClient
from src.models import ArticleRecord, DraftSet, Platform
from src.pipeline.phases import PhaseEvent, PipelinePhase, transition
from src.scrapers.content_extractor import extract_content
from src.scrapers.news_api import retrieve_articles

logger = logging.getLogger(__name__)

LABEL_EDIT_PHASES = (
    PipelinePhase.KEYWORD_ENTRY,
    PipelinePhase.LABELING,
    PipelinePhase.CLASSIFIER_ASSISTED,
)


class CurationSession:
    """One operator's curation and drafting session."""

    def __init__(
        self,
        classifier: ClassifierClient | None = None,
        volume_threshold: int = VOLUME_THRESHOLD,
        max_selection: int = MAX_SELECTION,
        page_limit: int = PAGE_LIMIT,
        recency_hours: int = RECENCY_HOURS,
        training_label: int = TRAINING_FEED_LABEL,
        min_content_length: int = MIN_CONTENT_LENGTH,
        max_versions: int = MAX_VERSIONS,
        snapshot_dir: str | None = SNAPSHOT_DIR,
    ):
        self.classifier = classifier or ClassifierClient()
        self.volume_threshold = volume_threshold
        self.max_selection = max_selection
        self.page_limit = page_limit
        self.recency_hours = recency_hours
        self.training_label = training_label
        self.min_content_length = min_content_length
        self.max_versions = max_versions
        self.snapshot_dir = snapshot_dir

        self._lock = threading.RLock()
        self._train_lock = threading.Lock()
        self._epoch = 0
        self._clear_state()
        self.phase = PipelinePhase.KEYWORD_ENTRY

    # --- state helpers ---

    def _clear_state(self) -> None:
        self.articles: list[ArticleRecord] = []
        self.candidate_pool: list[ArticleRecord] = []
        self.keywords = ""
        self.excerpts: list[str] = []
        self.draft_set: DraftSet | None = None
        self.last_error = ""

    def _require(self, *phases: PipelinePhase) -> None:
        if self.phase not in phases:
            allowed = ", ".join(p.value for p in phases)
            raise InvalidTransition(f"operation not allowed in phase '{self.phase.value}' (needs: {allowed})")

    def _advance(self, event: PhaseEvent) -> None:
        previous = self.phase
        self.phase = transition(self.phase, event)
        logger.info("[PHASE] %s -> %s (%s)", previous.value, self.phase.value, event.value)

    def _is_current(self, epoch: int) -> bool:
        if epoch != self._epoch:
            logger.info("[PHASE] Discarding result of an operation started before reset")
            return False
        return True

    def _fail(self, exc: PipelineError) -> PipelineError:
        self.last_error = str(exc)
        logger.warning("[PHASE] %s: %s", type(exc).__name__, exc)
        return exc

    # --- keyword entry / labeling ---

    def search(self, keyword_query: str) -> list[ArticleRecord]:
        """Fetch the training feed. Enough volume unlocks labeling review."""
        with self._lock:
            self._require(PipelinePhase.KEYWORD_ENTRY)
            epoch = self._epoch

        records = retrieve_articles(
            keyword_query,
            recency_hours=0,
            page_limit=self.page_limit,
            label=self.training_label,
        )
        return self._apply_training_records(records, keyword_query, epoch)

    def load_dataset(self, records: list[ArticleRecord], keyword_query: str = "") -> list[ArticleRecord]:
        """Use a previously exported, operator-labelled dataset as the training feed."""
        with self._lock:
            self._require(PipelinePhase.KEYWORD_ENTRY)
            epoch = self._epoch
        return self._apply_training_records(list(records), keyword_query, epoch)

    def _apply_training_records(self, records: list[ArticleRecord], keyword_query: str,
                                epoch: int) -> list[ArticleRecord]:
        with self._lock:
            if not self._is_current(epoch) or self.phase is not PipelinePhase.KEYWORD_ENTRY:
                return []
            self.articles = records
            self.keywords = keyword_query
            if len(records) >= self.volume_threshold:
                self._advance(PhaseEvent.RETRIEVED)
            else:
                logger.info(
                    "[PHASE] %s articles retrieved, %s needed for labeling",
                    len(records),
                    self.volume_threshold,
                )
            return list(records)

    def toggle_label(self, index: int) -> int:
        with self._lock:
            self._require(*LABEL_EDIT_PHASES)
            self.articles[index].toggle_label()
            return self.articles[index].label

    def set_label(self, index: int, value: int) -> None:
        with self._lock:
            self._require(*LABEL_EDIT_PHASES)
            self.articles[index].set_label(value)

    def remove_article(self, index: int) -> ArticleRecord:
        with self._lock:
            self._require(*LABEL_EDIT_PHASES)
            return self.articles.pop(index)

    def train(self) -> str:
        """
        Send the labelled dataset to the classifier; on success unlock assisted mode.
        Fewer than `volume_threshold` records raise InsufficientData, in keyword entry too.
        """
        with self._lock:
            self._require(PipelinePhase.KEYWORD_ENTRY, PipelinePhase.LABELING)
            if len(self.articles) < self.volume_threshold:
                raise self._fail(InsufficientData(
                    f"{len(self.articles)} labelled articles, at least {self.volume_threshold} needed"
                ))
            self._require(PipelinePhase.LABELING)
            if not self._train_lock.acquire(blocking=False):
                raise self._fail(TrainingInProgress("a training request is already running"))
            epoch = self._epoch
            dataset = [replace(a) for a in self.articles]

        try:
            try:
                message = self.classifier.train(dataset)
            except PipelineError as e:
                with self._lock:
                    raise self._fail(e)
            with self._lock:
                if self._is_current(epoch) and self.phase is PipelinePhase.LABELING:
                    self.last_error = ""
                    self._advance(PhaseEvent.TRAINED)
            return message
        finally:
            self._train_lock.release()

    @property
    def training_in_progress(self) -> bool:
        return self._train_lock.locked()

    # --- classifier assisted ---

    def search_candidates(self, keyword_query: str,
                          threshold: float = DEFAULT_CLASSIFIER_THRESHOLD) -> list[ArticleRecord]:
        """Fetch a fresh candidate pool and score it right away."""
        with self._lock:
            self._require(PipelinePhase.CLASSIFIER_ASSISTED)
            epoch = self._epoch

        pool = retrieve_articles(
            keyword_query,
            recency_hours=self.recency_hours,
            page_limit=self.page_limit,
            label=0,
        )
        with self._lock:
            if not self._is_current(epoch):
                return []
            self.candidate_pool = pool
            self.articles = [replace(a) for a in pool]
            self.keywords = keyword_query

        return self._score_pool(pool, threshold, epoch)

    def smart_filter(self, threshold: float = SMART_FILTER_THRESHOLD) -> list[ArticleRecord]:
        """Re-score the stored candidate pool with another threshold, without re-fetching."""
        with self._lock:
            self._require(PipelinePhase.CLASSIFIER_ASSISTED)
            if not self.candidate_pool:
                raise self._fail(InvalidTransition("no candidate pool to re-score; search first"))
            epoch = self._epoch
            pool = [replace(a) for a in self.candidate_pool]
        return self._score_pool(pool, threshold, epoch)

    def _score_pool(self, pool: list[ArticleRecord], threshold: float, epoch: int) -> list[ArticleRecord]:
        if not pool:
            return []
        try:
            scored = self.classifier.score(pool, threshold)
        except PipelineError as e:
            with self._lock:
                raise self._fail(e)
        with self._lock:
            if not self._is_current(epoch):
                return []
            self.articles = scored
            self.last_error = ""
            return list(scored)

    def selected_articles(self) -> list[ArticleRecord]:
        with self._lock:
            return [a for a in self.articles if a.label == 1]

    def enter_generation(self) -> list[ArticleRecord]:
        """One-way gate into extraction with 1..max_selection relevant records."""
        with self._lock:
            self._require(PipelinePhase.CLASSIFIER_ASSISTED)
            selected = self.selected_articles()
            if not 1 <= len(selected) <= self.max_selection:
                raise self._fail(SelectionOutOfBounds(
                    f"{len(selected)} articles selected, choose between 1 and {self.max_selection}"
                ))
            self.articles = [replace(a) for a in selected]
            self._advance(PhaseEvent.ENTER_GENERATION)
            return list(self.articles)

    # --- generation sub-flow ---

    def extract_excerpts(self, instruction: str) -> list[str]:
        with self._lock:
            self._require(PipelinePhase.EXTRACTING)
            epoch = self._epoch
            articles = [replace(a) for a in self.articles]

        extracted = extract_content(articles, snapshot_dir=self.snapshot_dir)
        excerpts = synthesize_excerpts(extracted, instruction, min_content_length=self.min_content_length)

        with self._lock:
            if not self._is_current(epoch):
                return []
            self.articles = extracted
            if not excerpts:
                raise self._fail(NoExcerptsExtracted(
                    "the selected articles have no interesting facts; go back to article selection"
                ))
            self.excerpts = excerpts
            self._advance(PhaseEvent.EXCERPTS_READY)
            return list(excerpts)

    def move_excerpt(self, index: int, direction: int) -> list[str]:
        with self._lock:
            self._require(PipelinePhase.DRAFTING)
            self.excerpts = move_excerpt(self.excerpts, index, direction)
            return list(self.excerpts)

    def reorder_excerpt(self, source: int, destination: int) -> list[str]:
        with self._lock:
            self._require(PipelinePhase.DRAFTING)
            self.excerpts = reorder_excerpt(self.excerpts, source, destination)
            return list(self.excerpts)

    def remove_excerpt(self, index: int) -> list[str]:
        with self._lock:
            self._require(PipelinePhase.DRAFTING)
            self.excerpts = remove_excerpt(self.excerpts, index)
            return list(self.excerpts)

    def generate_drafts(self, prompt: str, platform: Platform, versions: int) -> list[str]:
        with self._lock:
            self._require(PipelinePhase.DRAFTING)
            if not self.excerpts:
                raise self._fail(NoExcerptsExtracted("no excerpts left to build a post from"))
            epoch = self._epoch
            excerpts = list(self.excerpts)

        try:
            draft_set = generate_drafts(prompt, excerpts, platform, versions, max_versions=self.max_versions)
        except GenerationBatchFailed as e:
            with self._lock:
                if self._is_current(epoch):
                    self.draft_set = None
                raise self._fail(e)

        with self._lock:
            if not self._is_current(epoch):
                return []
            self.draft_set = draft_set
            self.last_error = ""
            return list(draft_set.drafts)

    def choose_draft(self, index: int) -> str:
        with self._lock:
            self._require(PipelinePhase.DRAFTING, PipelinePhase.FINALIZING)
            if self.draft_set is None:
                raise self._fail(InvalidTransition("no drafts to choose from"))
            text = self.draft_set.choose(index)
            if self.phase is PipelinePhase.DRAFTING:
                self._advance(PhaseEvent.DRAFT_CHOSEN)
            return text

    def edit_draft(self, text: str) -> str:
        with self._lock:
            self._require(PipelinePhase.FINALIZING)
            return self.draft_set.edit(text)

    @property
    def final_draft(self) -> str | None:
        with self._lock:
            return self.draft_set.selected_text if self.draft_set else None

    # --- export / reset ---

    def export_dataset(self, output_dir: str) -> str:
        with self._lock:
            snapshot = [replace(a) for a in self.articles]
        return export_dataset(snapshot, output_dir)

    def reset(self) -> None:
        """Back to keyword entry; all working state is discarded."""
        with self._lock:
            self._epoch += 1
            self._clear_state()
            self._advance(PhaseEvent.RESET)
