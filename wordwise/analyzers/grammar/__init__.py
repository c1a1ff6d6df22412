"""
Grammar Analysis for WordWise
=============================
Fast-tier grammar checking.

Features:
- Regex rule set (capitalization, punctuation, spacing, contractions,
  confusions, articles, agreement, misspellings, repeated words)
- Optional LanguageTool integration (3000+ rules, local Java server)

Requires: pip install language-tool-python (LanguageTool only)
"""

__version__ = "1.0.0"

# Lazy imports - only load when accessed
_client = None


def get_languagetool_client(language: str = 'en-US', disabled_rules=None):
    """Get the shared LanguageToolClient instance (lazy loaded)."""
    global _client
    if _client is None:
        from .languagetool import LanguageToolClient
        _client = LanguageToolClient(language, disabled_rules)
    return _client


def is_available() -> bool:
    """Rule-based grammar checks need no third-party library."""
    return True


def get_status() -> dict:
    """Get grammar integration status."""
    from ...config import get_config

    status = {
        'available': True,
        'rules': {'available': True},
        'languagetool': {'available': False, 'enabled': get_config().languagetool.enabled},
    }

    # Starting LanguageTool spawns a Java server, so only report it when enabled
    if status['languagetool']['enabled']:
        try:
            status['languagetool'].update(get_languagetool_client().get_status())
        except Exception as e:
            status['languagetool']['error'] = str(e)

    return status


def get_checker():
    """Get the GrammarAnalyzer class."""
    from .rules import GrammarAnalyzer
    return GrammarAnalyzer
