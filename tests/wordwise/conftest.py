"""Shared fixtures for the WordWise tests."""

import pytest

import config_logging
from wordwise import ai, config
from wordwise.base import AnalysisResult, AnalyzerBase, Finding


@pytest.fixture(autouse=True)
def fresh_config():
    """Every test starts from default engine and process configuration."""
    config.reset_config()
    config_logging.reset_rate_limiter()
    ai.reset()
    yield
    config.reset_config()
    ai.reset()


class StaticAnalyzer(AnalyzerBase):
    """Analyzer returning canned findings computed from the text."""

    ANALYZER_NAME = "Static"
    CATEGORY = "spelling"

    def __init__(self, produce, name: str = "Static", metrics=None, fail: bool = False):
        super().__init__(enabled=True)
        self.ANALYZER_NAME = name
        self.produce = produce
        self.metrics = metrics or {}
        self.fail = fail
        self.calls = []

    def _initialize(self) -> bool:
        return True

    def _run_impl(self, text, metadata, result: AnalysisResult):
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("analyzer exploded")
        result.metrics.update(self.metrics)
        return list(self.produce(text))


def word_finding(category: str, sub_category: str, word: str, fix: str,
                 severity: str = 'warning'):
    """Producer flagging every occurrence of `word`."""
    def produce(text):
        start = text.find(word)
        while start != -1:
            yield Finding(
                rule_id=f"{category}/{sub_category}",
                category=category,
                sub_category=sub_category,
                message=f'"{word}" flagged',
                span_start=start,
                span_end=start + len(word),
                candidate_fixes=[fix],
                severity=severity,
            )
            start = text.find(word, start + 1)
    return produce
