"""
Document Context for AI Enhancement
===================================
Gathers the document-level facts an enhancement prompt needs: title,
first paragraph, a rough topic, tone, SEO metadata and the paragraph
surrounding each Suggestion.
"""

import hashlib
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..analyzers.textutils import split_paragraphs
from ..models import DocumentMetadata, Suggestion

COMMON_WORDS = frozenset({
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of',
    'with', 'as', 'by', 'is', 'was', 'are', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'can', 'this', 'that', 'these', 'those',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'them', 'their', 'what',
    'which', 'who', 'when', 'where', 'why', 'how', 'all', 'each', 'every',
    'some', 'any', 'few', 'more', 'most', 'other', 'into', 'through',
    'during', 'before', 'after', 'above', 'below', 'from', 'about',
    'between', 'under',
})

FORMAL_INDICATORS = (
    'therefore', 'however', 'furthermore', 'consequently', 'nevertheless',
    'moreover', 'nonetheless', 'accordingly', 'hence', 'thus',
    'whereas', 'whereby', 'wherein', 'thereafter', 'notwithstanding',
)

CASUAL_INDICATORS = (
    "i'm", "you're", "we're", "it's", "don't", "won't", "can't",
    "didn't", "wasn't", "weren't", "haven't", "hasn't", "hadn't",
    "wouldn't", "couldn't", "shouldn't", "gonna", "wanna", "gotta",
    "yeah", "yep", "nope", "ok", "okay", "hey", "hi", "bye",
)

FORMAL_DENSITY = 0.01
CASUAL_DENSITY = 0.02


@dataclass
class DocumentContext:
    """Everything an enhancement prompt knows about the document."""
    title: str = ""
    first_paragraph: str = ""
    detected_topic: str = "general"
    detected_tone: str = "neutral"
    target_keyword: str = ""
    meta_description: str = ""
    surrounding_paragraphs: Dict[str, str] = field(default_factory=dict)

    def context_hash(self) -> str:
        """SHA-256 over the parts of the context that change a rewrite."""
        digest = hashlib.sha256()
        for part in (self.first_paragraph, self.title, self.target_keyword):
            digest.update(part.encode('utf-8'))
            digest.update(b'\x1f')
        return digest.hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'firstParagraph': self.first_paragraph,
            'detectedTopic': self.detected_topic,
            'detectedTone': self.detected_tone,
            'targetKeyword': self.target_keyword,
            'metaDescription': self.meta_description,
            'surroundingParagraphs': dict(self.surrounding_paragraphs),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DocumentContext':
        data = data or {}
        return cls(
            title=data.get('title') or '',
            first_paragraph=data.get('firstParagraph') or '',
            detected_topic=data.get('detectedTopic') or 'general',
            detected_tone=data.get('detectedTone') or 'neutral',
            target_keyword=data.get('targetKeyword') or '',
            meta_description=data.get('metaDescription') or '',
            surrounding_paragraphs=dict(data.get('surroundingParagraphs') or {}),
        )


class DocumentContextExtractor:
    """Builds a DocumentContext from a plain-text snapshot and its metadata."""

    def extract(
        self,
        text: str,
        metadata: Optional[DocumentMetadata] = None,
        suggestions: Sequence[Suggestion] = ()
    ) -> DocumentContext:
        metadata = metadata or DocumentMetadata()
        paragraphs = [p for p in (metadata.paragraphs or split_paragraphs(text)) if p.strip()]

        return DocumentContext(
            title=self.extract_title(metadata),
            first_paragraph=paragraphs[0] if paragraphs else '',
            detected_topic=self.detect_topic(text),
            detected_tone=self.detect_tone(text),
            target_keyword=metadata.target_keyword,
            meta_description=metadata.meta_description,
            surrounding_paragraphs=self.map_suggestions_to_paragraphs(suggestions, text, paragraphs),
        )

    @staticmethod
    def extract_title(metadata: DocumentMetadata) -> str:
        """First H1 heading, else the metadata title."""
        for heading in metadata.headings:
            if heading.level == 1 and heading.text.strip():
                return heading.text
        return metadata.title

    @staticmethod
    def detect_topic(text: str) -> str:
        """Most frequent word longer than four letters that isn't a common word."""
        words = [w for w in text.lower().split() if len(w) > 4 and w not in COMMON_WORDS]
        if not words:
            return 'general'
        return Counter(words).most_common(1)[0][0]

    @staticmethod
    def detect_tone(text: str) -> str:
        """formal, casual or neutral by indicator density."""
        words = text.split()
        if not words:
            return 'neutral'

        lower = text.lower()
        formal = sum(1 for w in FORMAL_INDICATORS if w in lower)
        casual = sum(1 for w in CASUAL_INDICATORS if re.search(rf"\b{re.escape(w)}\b", lower))

        if formal / len(words) > FORMAL_DENSITY:
            return 'formal'
        if casual / len(words) > CASUAL_DENSITY:
            return 'casual'
        return 'neutral'

    @staticmethod
    def map_suggestions_to_paragraphs(
        suggestions: Sequence[Suggestion],
        text: str,
        paragraphs: List[str]
    ) -> Dict[str, str]:
        """Map each positioned Suggestion id to the paragraph containing its start."""
        ranges = []
        cursor = 0
        for paragraph in paragraphs:
            start = text.find(paragraph, cursor)
            if start < 0:
                continue
            ranges.append((start, start + len(paragraph), paragraph))
            cursor = start + len(paragraph)

        mapped: Dict[str, str] = {}
        for suggestion in suggestions:
            if suggestion.position is None:
                continue
            for start, end, paragraph in ranges:
                if start <= suggestion.position.start < end:
                    mapped[suggestion.id] = paragraph
                    break
        return mapped
