"""
WordWise Analyzer Set
=====================
Pluggable analyzers grouped by scheduler tier.

- instant: spelling (SymSpell + common misspellings)
- fast:    grammar rules, style heuristics + proselint, LanguageTool (optional)
- deep:    SEO, readability (textstat), document metrics

Subpackages load lazily; a missing optional library only disables the
analyzer that needs it.
"""

from typing import Dict, FrozenSet, List

__version__ = "1.0.0"

INSTANT = 'instant'
FAST = 'fast'
DEEP = 'deep'
AI_ENHANCE = 'ai-enhance'

ANALYSIS_TIERS = (INSTANT, FAST, DEEP)

# Categories each tier may publish
TIER_NAMESPACES: Dict[str, FrozenSet[str]] = {
    INSTANT: frozenset({'spelling'}),
    FAST: frozenset({'grammar', 'style'}),
    DEEP: frozenset({'seo', 'readability'}),
}

_MODULES = {
    'spelling': 'wordwise.analyzers.spelling',
    'grammar': 'wordwise.analyzers.grammar',
    'style': 'wordwise.analyzers.style',
    'readability': 'wordwise.analyzers.readability',
}

_loaded_modules = {}


def __getattr__(name):
    """Lazy load subpackages on first access."""
    if name in _MODULES:
        if name not in _loaded_modules:
            import importlib
            _loaded_modules[name] = importlib.import_module(_MODULES[name])
        return _loaded_modules[name]
    raise AttributeError(f"module 'wordwise.analyzers' has no attribute '{name}'")


def build_analyzers(tier: str) -> List:
    """
    Instantiate the configured analyzers for a tier.

    Disabled analyzers are left out; LanguageTool is only built when enabled
    because starting it launches a Java server.
    """
    from ..config import get_config
    config = get_config()

    if tier == INSTANT:
        from .spelling.checker import SpellingAnalyzer
        return [SpellingAnalyzer.from_config(config.spelling)] if config.spelling.enabled else []

    if tier == FAST:
        from .grammar.rules import GrammarAnalyzer
        from .style.checker import StyleAnalyzer
        analyzers = []
        if config.grammar.enabled:
            analyzers.append(GrammarAnalyzer.from_config(config.grammar))
        if config.style.enabled:
            analyzers.append(StyleAnalyzer.from_config(config.style))
        if config.languagetool.enabled:
            from .grammar.languagetool import LanguageToolAnalyzer
            analyzers.append(LanguageToolAnalyzer.from_config(config.languagetool))
        return analyzers

    if tier == DEEP:
        from .metrics import MetricsAnalyzer
        from .readability.checker import ReadabilityAnalyzer
        from .seo import SEOAnalyzer
        analyzers = []
        if config.seo.enabled:
            analyzers.append(SEOAnalyzer.from_config(config.seo))
        if config.readability.enabled:
            analyzers.append(ReadabilityAnalyzer.from_config(config.readability))
        if config.metrics.enabled:
            analyzers.append(MetricsAnalyzer.from_config(config.metrics))
        return analyzers

    raise ValueError(f"Unknown analysis tier: {tier}")


def get_status() -> dict:
    """Availability of each analyzer's third-party integration."""
    status = {'version': __version__, 'modules': {}}
    for name in _MODULES:
        try:
            status['modules'][name] = __getattr__(name).get_status()
        except ImportError as e:
            status['modules'][name] = {'available': False, 'error': str(e)}
    return status
