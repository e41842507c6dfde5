import logging
import unittest
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.append(str(Path(__file__).parent.parent))

from classifier import LabelClassifier, overall


class TestLabelClassifier(unittest.TestCase):

    def setUp(self):
        self.classifier = LabelClassifier()
        self.classifier.record([1, 2], "a")
        self.classifier.record([1, 2], "a")
        self.classifier.record([3], "b")

    def test_record_counts_nodes_and_timesteps(self):
        self.assertEqual(self.classifier.nodes["a"], {1: 2, 2: 2})
        self.assertEqual(self.classifier.timesteps, {"a": 2, "b": 1})

    def test_classify_keeps_strongest_nodes(self):
        self.classifier.record([1], "a")
        result = self.classifier.classify(kwinner=1)
        self.assertEqual(list(result["a"]), [1])
        self.assertAlmostEqual(result["a"][1], 3 / (3 / 3 + 2 / 3))
        self.assertEqual(result["b"], {3: 1.0})

    def test_score(self):
        self.classifier.classify(kwinner=2)
        scores = self.classifier.score([1])
        self.assertAlmostEqual(scores["a"], 0.0)
        self.assertAlmostEqual(scores["b"], -1.0)

        scores = self.classifier.score([3])
        self.assertAlmostEqual(scores["a"], -2.0)
        self.assertAlmostEqual(scores["b"], 1.0)

    def test_score_requires_classify(self):
        with self.assertRaises(ValueError):
            self.classifier.score([1])

    def test_nodes_are_counted_by_key(self):
        classifier = LabelClassifier()
        classifier.record([SimpleNamespace(key=("A", 1))], "a")
        classifier.record([SimpleNamespace(key=("A", 1))], "a")
        self.assertEqual(classifier.nodes["a"], {("A", 1): 2})

    def test_empty_label(self):
        classifier = LabelClassifier()
        classifier.record([], "a")
        self.assertEqual(classifier.classify(kwinner=3), {"a": {}})
        self.assertEqual(classifier.score([1]), {"a": 0})


def test_overall_per_label_percentage():
    scores = [
        ("a", {"a": 1.0, "b": 0.0}),
        ("a", {"a": 0.0, "b": 1.0}),
        ("b", {"a": 0.0, "b": 2.0}),
        ("b", {}),
    ]
    per_label, total = overall(scores)
    assert per_label == {"a": pytest.approx(50.0), "b": pytest.approx(100.0)}
    assert total == pytest.approx(75.0)


def test_overall_without_scores():
    assert overall([]) == ({}, 0.0)


def test_overall_logs_score(caplog):
    with caplog.at_level(logging.INFO, logger="classifier"):
        overall([("a", {"a": 1.0, "b": 0.0})])
    assert "a 100.0" in caplog.text
    assert "SCORE: 100.0" in caplog.text
