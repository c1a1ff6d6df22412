"""
Enhancement and detection prompts.
"""

from typing import Dict, List, Sequence

from ..models import DocumentMetadata, Suggestion
from .context import DocumentContext

SYSTEM_PROMPT = (
    "You are an expert writing assistant. Analyze and enhance writing suggestions. "
    "Respond with a single JSON object of the form "
    '{"suggestions": [{"id": string, "enhancedFix": string (optional), '
    '"confidence": number between 0 and 1, "reasoning": string, '
    '"shouldReplace": boolean, "alternativeFixes": [string] (optional)}]}. '
    "Return one entry per suggestion id you were given and nothing else."
)

INSTRUCTIONS = """For each suggestion:
1. If it has fixes, evaluate if they're contextually appropriate
2. If fixes could be better, provide an enhanced fix
3. If no fixes exist, generate the best fix
4. Rate your confidence (0-1) in the enhancement
5. Explain your reasoning briefly (max 20 words)

CRITICAL STYLE RULES:
- For passive voice: ALWAYS restructure to active voice (e.g., "was written by" -> "wrote")
- For weasel words: REMOVE them entirely or replace with specific facts
- For wordiness: Simplify and make concise
- For complex sentences: Break into shorter, clearer sentences

Examples:
- Passive: "The report was completed by the team" -> "The team completed the report"
- Weasel: "Some experts believe" -> "Dr. Smith's research shows" OR remove entirely
- Wordy: "due to the fact that" -> "because"

For SEO suggestions specifically:
- If missing target keyword, suggest one based on the content
- Ensure keyword appears naturally in title, meta description, and H1
- Provide specific text improvements, not just advice
- Consider search intent and user value"""


def _seo_type(suggestion: Suggestion) -> str:
    if 'title' in suggestion.sub_category:
        return 'Title'
    if 'meta' in suggestion.sub_category:
        return 'Meta Description'
    return 'Content'


def format_suggestion(suggestion: Suggestion, context: DocumentContext) -> str:
    error_text = suggestion.match_text or suggestion.original_text
    fixes = ', '.join(f'"{a.value}"' for a in suggestion.fix_actions if a.value) or 'none'
    lines = [
        f"ID: {suggestion.id}",
        f"Category: {suggestion.category}",
        f'Error text: "{error_text}"',
        f"Issue: {suggestion.message}",
        f"Current fixes: {fixes}",
    ]
    paragraph = context.surrounding_paragraphs.get(suggestion.id)
    if paragraph and error_text:
        lines.append(f'Context: "{paragraph.replace(error_text, f"[{error_text}]", 1)}"')
    elif error_text:
        lines.append(f'Context: "[{error_text}]"')
    if suggestion.category == 'seo':
        lines.append(f"SEO Type: {_seo_type(suggestion)}")
    return '\n'.join(lines)


def build_enhancement_prompt(suggestions: Sequence[Suggestion], context: DocumentContext) -> str:
    """User prompt listing the document context and every suggestion."""
    header = f"""Document Context:
- Title: {context.title or 'Untitled'}
- Topic: {context.detected_topic or 'General'}
- Tone: {context.detected_tone or 'Neutral'}
- Target Keyword: {context.target_keyword or 'None specified'}
- Meta Description: {context.meta_description or 'Not set'}
- First paragraph: {context.first_paragraph}"""

    body = '\n\n'.join(format_suggestion(s, context) for s in suggestions)

    focus = f"""Focus on:
- Contextual accuracy (especially for spelling suggestions)
- Clarity and conciseness
- Maintaining document tone ({context.detected_tone})
- Fixing the actual issue described
- Providing actionable alternatives when possible
- For SEO: specific keyword-optimized rewrites
- For style: MUST fix the underlying issue (passive to active, remove weasels, etc.)"""

    return f"{header}\n\n{INSTRUCTIONS}\n\nSuggestions to enhance:\n\n{body}\n\n{focus}"


def build_messages(suggestions: Sequence[Suggestion], context: DocumentContext) -> List[Dict[str, str]]:
    return [
        {'role': 'system', 'content': SYSTEM_PROMPT},
        {'role': 'user', 'content': build_enhancement_prompt(suggestions, context)},
    ]


DETECT_SYSTEM_PROMPT = (
    "You are an expert editor. Find writing issues that automated checkers miss. "
    "Respond with a single JSON object of the form "
    '{"suggestions": [{"category": "spelling" | "grammar" | "style" | "seo" | "tone", '
    '"matchText": string, "message": string, "fix": string, '
    '"confidence": number between 0 and 1, "contextBefore": string (max 40 chars), '
    '"contextAfter": string (max 40 chars)}]}. '
    "matchText must be copied exactly from the document."
)

# Characters of document content included in a detection prompt
DETECT_CONTENT_CHARS = 2000


def build_detection_prompt(text: str, metadata: DocumentMetadata, existing_count: int,
                           max_issues: int = 5) -> str:
    content = text[:DETECT_CONTENT_CHARS]
    if len(text) > DETECT_CONTENT_CHARS:
        content += '...'
    return f"""Analyze this document for writing issues not already identified.

Document:
Title: {metadata.title or 'Untitled'}
Target Keyword: {metadata.target_keyword or 'None'}
Meta Description: {metadata.meta_description or 'None'}
Content: {content}

Already identified: {existing_count} issues found by automated checkers.

Find up to {max_issues} HIGH-VALUE improvements that automated tools would miss:
1. Contextual spelling errors (homophones, commonly confused words)
2. Complex grammar issues requiring context
3. Style improvements for clarity and flow
4. SEO opportunities (natural keyword placement, readability)
5. Tone consistency issues

For each issue:
- Provide the exact text that needs fixing (matchText)
- Include 20-40 chars of context before and after
- Suggest a specific fix
- Rate confidence (0.7+ only for high-value issues)

Focus on issues that significantly improve the document. Ignore minor nitpicks."""


def build_detection_messages(text: str, metadata: DocumentMetadata, existing_count: int,
                             max_issues: int = 5) -> List[Dict[str, str]]:
    return [
        {'role': 'system', 'content': DETECT_SYSTEM_PROMPT},
        {'role': 'user', 'content': build_detection_prompt(text, metadata, existing_count,
                                                           max_issues)},
    ]
