import unittest
from unittest.mock import MagicMock

import requests

from src.errors import UpstreamUnavailable
from src.filters.relevance_classifier import ClassifierClient
from src.models import ArticleRecord


def _records() -> list[ArticleRecord]:
    return [
        ArticleRecord(url="https://n/1", title="Kids and phones", label=1),
        ArticleRecord(url="https://n/2", title="Stock market", label=0),
    ]


class TestClassifierClient(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.client = ClassifierClient(base_url="http://classifier:8000/", session=self.session, timeout=5)

    def _respond(self, payload):
        self.session.post.return_value.json.return_value = payload

    def test_train_posts_labelled_dataset(self):
        self._respond({"message": "Model trained and saved successfully."})

        message = self.client.train(_records())

        self.assertEqual(message, "Model trained and saved successfully.")
        url = self.session.post.call_args.args[0]
        body = self.session.post.call_args.kwargs["json"]
        self.assertEqual(url, "http://classifier:8000/train-classifier")
        self.assertEqual([a["label"] for a in body["articles"]], [1, 0])
        self.assertEqual(self.session.post.call_args.kwargs["timeout"], 5)

    def test_score_returns_new_labelled_records(self):
        self._respond({"classified_articles": [
            {"url": "https://n/1", "title": "Kids and phones", "label": 1},
            {"url": "https://n/2", "title": "Stock market", "label": 0},
        ]})
        candidates = [ArticleRecord(url=a.url, title=a.title) for a in _records()]

        scored = self.client.score(candidates, threshold=0.5)

        self.assertEqual([a.label for a in scored], [1, 0])
        self.assertEqual([a.label for a in candidates], [0, 0])
        self.assertEqual(self.session.post.call_args.kwargs["json"]["threshold"], 0.5)

    def test_score_rejects_invalid_label(self):
        self._respond({"classified_articles": [
            {"url": "https://n/1", "title": "a", "label": 1},
            {"url": "https://n/2", "title": "b", "label": 0.8},
        ]})
        with self.assertRaises(UpstreamUnavailable):
            self.client.score(_records())

    def test_score_rejects_missing_label(self):
        self._respond({"classified_articles": [{"url": "https://n/1", "title": "a"}]})
        with self.assertRaises(UpstreamUnavailable):
            self.client.score(_records())

    def test_score_rejects_unexpected_shape(self):
        for payload in ({"detail": "Model not trained"}, {"classified_articles": "nope"}):
            self._respond(payload)
            with self.assertRaises(UpstreamUnavailable):
                self.client.score(_records())

    def test_non_object_response(self):
        self._respond(["not", "an", "object"])
        with self.assertRaises(UpstreamUnavailable):
            self.client.train(_records())

    def test_http_error_is_upstream_unavailable(self):
        self.session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        with self.assertRaises(UpstreamUnavailable) as ctx:
            self.client.train(_records())
        self.assertIn("/train-classifier", str(ctx.exception))

    def test_invalid_json_is_upstream_unavailable(self):
        self.session.post.return_value.json.side_effect = ValueError("No JSON object could be decoded")
        with self.assertRaises(UpstreamUnavailable):
            self.client.score(_records())


if __name__ == "__main__":
    unittest.main()
