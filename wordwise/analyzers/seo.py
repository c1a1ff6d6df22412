"""
SEO Analyzer
============
Deep-tier, document-wide search optimization checks.

Scores five areas from 0-100 and combines them into one weighted SEO
score (title .25, meta .15, keyword .25, headings .2, content .15). Every
Finding is document-wide.
"""

import re
from typing import Dict, List, Optional, Tuple

from ..base import AnalysisResult, AnalyzerBase, Finding
from ..models import DocumentMetadata, Heading
from .textutils import split_paragraphs, word_count

SCORE_WEIGHTS: Dict[str, float] = {
    'title': 0.25,
    'meta': 0.15,
    'keyword': 0.25,
    'headings': 0.20,
    'content': 0.15,
}

CTA_WORDS = re.compile(r'learn|discover|find out|read|explore|get', re.IGNORECASE)

TITLE = "SEO Suggestion"


class SEOAnalyzer(AnalyzerBase):
    """Title, meta description, heading, content and keyword checks."""

    ANALYZER_NAME = "SEO"
    ANALYZER_VERSION = "1.0.0"
    CATEGORY = "seo"

    def __init__(self, enabled: bool = True, seo_config=None):
        super().__init__(enabled)
        if seo_config is None:
            from ..config import SEOConfig
            seo_config = SEOConfig()
        self.settings = seo_config

    @classmethod
    def from_config(cls, seo_config=None) -> 'SEOAnalyzer':
        if seo_config is None:
            from ..config import get_config
            seo_config = get_config().seo
        return cls(enabled=seo_config.enabled, seo_config=seo_config)

    def _initialize(self) -> bool:
        return True

    def _run_impl(
        self,
        text: str,
        metadata: DocumentMetadata,
        result: AnalysisResult
    ) -> List[Finding]:
        findings: List[Finding] = []
        keyword = metadata.target_keyword.strip()
        paragraphs = metadata.paragraphs or split_paragraphs(text)
        words = word_count(text)

        scores = {
            'title': self._check_title(metadata.title, keyword, findings),
            'meta': self._check_meta(metadata.meta_description, keyword, findings),
            'headings': self._check_headings(metadata.headings, keyword, findings),
            'content': self._check_content(paragraphs, words, len(metadata.headings), findings),
        }
        keyword_score, density = self._check_keyword(text, paragraphs, words, keyword, findings)
        scores['keyword'] = keyword_score

        total = round(sum(scores[name] * weight for name, weight in SCORE_WEIGHTS.items()))
        result.metrics.update({
            'seo_score': max(0, min(100, total)),
            'title_score': scores['title'],
            'meta_score': scores['meta'],
            'keyword_score': scores['keyword'],
            'heading_score': scores['headings'],
            'content_score': scores['content'],
            'keyword_density': density,
            'word_count': words,
        })
        return findings

    def _suggest(self, findings: List[Finding], sub_category: str, message: str):
        findings.append(self.create_finding(sub_category, message, title=TITLE))

    # ------------------------------------------------------------------
    # Checks; each returns a 0-100 score
    # ------------------------------------------------------------------

    def _check_title(self, title: str, keyword: str, findings: List[Finding]) -> int:
        score = 100
        cfg = self.settings
        if len(title) < cfg.title_min:
            self._suggest(findings, 'title-too-short',
                          f"Title is too short. Aim for {cfg.title_min}-{cfg.title_max} "
                          f"characters (currently {len(title)}).")
            score -= 30
        elif len(title) > cfg.title_max:
            self._suggest(findings, 'title-too-long',
                          f"Title is too long. Aim for {cfg.title_min}-{cfg.title_max} "
                          f"characters (currently {len(title)}).")
            score -= 20

        if keyword:
            position = title.lower().find(keyword.lower())
            if position < 0:
                self._suggest(findings, 'title-missing-keyword',
                              "Target keyword is missing from the title.")
                score -= 40
            elif position > len(title) / 2:
                # Keyword late in the title: score only
                score -= 10
        return max(0, score)

    def _check_meta(self, description: str, keyword: str, findings: List[Finding]) -> int:
        cfg = self.settings
        if not description:
            self._suggest(findings, 'meta-missing',
                          "Meta description is missing. This is critical for search appearance.")
            return 0

        score = 100
        if len(description) < cfg.meta_min:
            self._suggest(findings, 'meta-too-short',
                          f"Meta description is too short. Aim for {cfg.meta_min}-{cfg.meta_max} "
                          f"characters (currently {len(description)}).")
            score -= 25
        elif len(description) > cfg.meta_max:
            self._suggest(findings, 'meta-too-long',
                          "Meta description is too long and will be cut off by Google "
                          f"(currently {len(description)}).")
            score -= 20

        if keyword and keyword.lower() not in description.lower():
            self._suggest(findings, 'meta-missing-keyword',
                          "Target keyword is missing from the meta description.")
            score -= 30

        if not CTA_WORDS.search(description):
            self._suggest(findings, 'meta-no-cta',
                          'Consider adding a call-to-action (e.g., "Learn more") '
                          'to your meta description.')
            score -= 10

        return max(0, score)

    def _check_headings(self, headings: List[Heading], keyword: str,
                        findings: List[Finding]) -> int:
        score = 100
        h1_count = sum(1 for h in headings if h.level == 1)

        if h1_count == 0:
            self._suggest(findings, 'no-h1',
                          "The document is missing an H1 tag. Every page should have exactly one H1.")
            score -= 40
        elif h1_count > 1:
            self._suggest(findings, 'multiple-h1s',
                          f"There are {h1_count} H1 tags. You should only use one H1 per page.")
            score -= 30

        last_level = 0
        for heading in headings:
            if heading.level > last_level + 1:
                self._suggest(findings, 'invalid-heading-sequence',
                              f"Heading structure is illogical. A H{heading.level} "
                              f"appears after a H{last_level}.")
                score -= 15
                # Only the first hierarchy issue is reported
                break
            last_level = heading.level

        if keyword and not any(keyword.lower() in h.text.lower() for h in headings):
            self._suggest(findings, 'heading-missing-keyword',
                          "Include your target keyword in at least one subheading (H2, H3, etc.).")
            score -= 20

        return max(0, score)

    def _check_content(self, paragraphs: List[str], words: int, heading_count: int,
                       findings: List[Finding]) -> int:
        score = 100
        cfg = self.settings

        if words < cfg.min_words:
            self._suggest(findings, 'content-too-short',
                          f"Content is too short ({words} words). Aim for at least "
                          f"{cfg.min_words} words for better ranking potential.")
            score -= 40

        long_paragraphs = [p for p in paragraphs if word_count(p) > cfg.max_paragraph_words]
        if long_paragraphs:
            self._suggest(findings, 'long-paragraphs',
                          f"Break up long paragraphs. {len(long_paragraphs)} paragraph(s) "
                          f"are over {cfg.max_paragraph_words} words.")
            score -= 10

        if words > cfg.min_words and heading_count < 2:
            self._suggest(findings, 'few-subheadings',
                          "Add more subheadings to break up the text and improve readability.")
            score -= 10

        return max(0, score)

    def _check_keyword(self, text: str, paragraphs: List[str], words: int, keyword: str,
                       findings: List[Finding]) -> Tuple[int, Optional[float]]:
        if not keyword or words == 0:
            return 100, None

        cfg = self.settings
        score = 100
        occurrences = len(re.findall(rf'\b{re.escape(keyword)}\b', text, re.IGNORECASE))
        density = occurrences / words * 100

        if density == 0:
            self._suggest(findings, 'keyword-density-low',
                          "Target keyword was not found in the content.")
            return 0, density
        if density < cfg.keyword_density_min:
            self._suggest(findings, 'keyword-density-low',
                          f"Keyword density is too low ({density:.1f}%). "
                          f"Aim for {cfg.keyword_density_min}% to 2%.")
            score -= 40
        elif density > cfg.keyword_density_max:
            self._suggest(findings, 'keyword-density-high',
                          f"Keyword density is too high ({density:.1f}%), which can be seen "
                          f"as keyword stuffing. Aim for under {cfg.keyword_density_max}%.")
            score -= 50

        first_paragraph = paragraphs[0] if paragraphs else text
        if keyword.lower() not in first_paragraph.lower():
            self._suggest(findings, 'no-keyword-in-first-paragraph',
                          "Target keyword does not appear in the first paragraph.")
            score -= 20

        return max(0, score), density
