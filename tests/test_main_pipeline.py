from __future__ import annotations

import json
from pathlib import Path

import main
import src.pipeline.session as session_module
from src.errors import GenerationBatchFailed, UpstreamUnavailable
from src.models import ArticleRecord, DraftSet


def _records(n: int, label: int, prefix: str) -> list[ArticleRecord]:
    return [ArticleRecord(url=f"https://n/{prefix}{i}", title=f"{prefix} {i}", label=label) for i in range(n)]


class FakeClassifier:
    train_error: Exception | None = None

    def __init__(self, *args, **kwargs):
        pass

    def train(self, articles):
        if self.train_error:
            raise self.train_error
        return "Model trained and saved successfully."

    def score(self, articles, threshold=0.7):
        # first three candidates are relevant
        return [ArticleRecord(url=a.url, title=a.title, label=1 if i < 3 else 0) for i, a in enumerate(articles)]


def _patch_pipeline_deps(monkeypatch, training_count: int = 200):
    monkeypatch.setattr(main, "validate_config", lambda: (True, []))
    monkeypatch.setattr(session_module, "ClassifierClient", FakeClassifier)

    def fake_retrieve(keyword_query, recency_hours, page_limit, label=0, **kwargs):
        if recency_hours == 0:
            return _records(training_count, label, "t")
        return _records(10, label, "c")

    calls = {"extract": None, "drafts": 0}

    def fake_extract(articles, snapshot_dir=None, **kwargs):
        calls["extract"] = [a.url for a in articles]
        return [a.with_content("x" * 500) for a in articles]

    def fake_generate(prompt, excerpts, platform, versions, max_versions=4):
        calls["drafts"] += 1
        return DraftSet(platform=platform, drafts=[f"draft {i}" for i in range(versions)])

    monkeypatch.setattr(session_module, "retrieve_articles", fake_retrieve)
    monkeypatch.setattr(session_module, "extract_content", fake_extract)
    monkeypatch.setattr(
        session_module, "synthesize_excerpts",
        lambda articles, instruction, min_content_length=300: ["fact one", "fact two"],
    )
    monkeypatch.setattr(session_module, "generate_drafts", fake_generate)
    return calls


def _args(tmp_path: Path, *extra: str):
    return main.parse_args(["--keywords", "kids, screen time", "--output-dir", str(tmp_path),
                            "--snapshot-dir", "", *extra])


def test_full_session_writes_post_and_dataset(monkeypatch, tmp_path):
    calls = _patch_pipeline_deps(monkeypatch)

    result = main.run_pipeline(_args(tmp_path, "--versions", "3", "--choose", "1"))

    assert result.success is True
    assert result.exit_reason == "completed"
    assert result.phase == "finalizing"
    assert (result.retrieved_count, result.candidate_count, result.relevant_count) == (200, 10, 3)
    assert result.selected_count == 3
    assert result.excerpt_count == 2
    assert result.draft_count == 3
    assert calls["extract"] == ["https://n/c0", "https://n/c1", "https://n/c2"]

    post = Path(result.post_path).read_text(encoding="utf-8")
    assert "draft 1" in post
    assert "- fact one" in post
    dataset = json.loads(Path(result.dataset_path).read_text(encoding="utf-8"))
    assert len(dataset) == 3


def test_select_limits_articles_sent_to_extraction(monkeypatch, tmp_path):
    calls = _patch_pipeline_deps(monkeypatch)

    result = main.run_pipeline(_args(tmp_path, "--select", "1"))

    assert result.success is True
    assert result.selected_count == 1
    assert calls["extract"] == ["https://n/c0"]


def test_dry_run_prints_drafts(monkeypatch, tmp_path, capsys):
    _patch_pipeline_deps(monkeypatch)

    result = main.run_pipeline(_args(tmp_path, "--dry-run"))

    assert result.success is True
    assert result.post_path == ""
    out = capsys.readouterr().out
    assert "Draft 0 (chosen)" in out
    assert "draft 1" in out


def test_not_enough_articles_soft_stop(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch, training_count=199)

    result = main.run_pipeline(_args(tmp_path))
    assert result.success is True
    assert result.exit_reason == "not enough articles to train (199/200)"
    assert result.phase == "keyword_entry"

    strict = main.run_pipeline(_args(tmp_path, "--strict"))
    assert strict.success is False


def test_review_only_exports_training_feed(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch, training_count=20)

    result = main.run_pipeline(_args(tmp_path, "--review-only"))

    assert result.success is True
    assert result.exit_reason == "exported for labelling"
    assert Path(result.dataset_path).exists()
    assert "# Training feed: kids, screen time" in Path(result.review_path).read_text(encoding="utf-8")


def test_training_failure_is_recorded(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch)
    monkeypatch.setattr(FakeClassifier, "train_error", UpstreamUnavailable("classifier down"))

    result = main.run_pipeline(_args(tmp_path))

    assert result.success is False
    assert result.exit_reason == "classifier training failed"
    assert result.phase == "labeling"
    assert result.failures[0].stage == "train"
    assert result.failures[0].error_type == "UpstreamUnavailable"


def test_draft_batch_failure(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch)

    def failing_generate(*args, **kwargs):
        raise GenerationBatchFailed("1 of 2 draft generations failed")

    monkeypatch.setattr(session_module, "generate_drafts", failing_generate)

    result = main.run_pipeline(_args(tmp_path))

    assert result.success is False
    assert result.exit_reason == "draft generation failed"
    assert result.phase == "drafting"


def test_config_failure_stops_before_any_call(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch)
    monkeypatch.setattr(main, "validate_config", lambda: (False, ["NEWS_API_KEY is not set"]))

    result = main.run_pipeline(_args(tmp_path))

    assert result.success is False
    assert result.exit_reason == "configuration validation failed"
    assert result.failures[0].message == "NEWS_API_KEY is not set"


def test_main_requires_keywords_or_dataset(tmp_path):
    assert main.main(["--output-dir", str(tmp_path)]) == 2


def test_main_writes_run_summary(monkeypatch, tmp_path):
    _patch_pipeline_deps(monkeypatch)

    code = main.main(["--keywords", "kids", "--output-dir", str(tmp_path), "--snapshot-dir", "", "--dry-run"])

    assert code == 0
    summaries = list(tmp_path.glob("run-summary-*.json"))
    assert len(summaries) == 1
    data = json.loads(summaries[0].read_text(encoding="utf-8"))
    assert data["exit_reason"] == "completed"
    assert data["draft_count"] == 2
