"""
WordWise Analysis Engine
========================
Multi-tier text analysis with live suggestion position tracking.

Pipeline:
    Document -> extractor -> analyzers (instant/fast/deep) -> factory
             -> dedup -> tracker -> renderer
                         ^
                         AI enhancement queue

Subpackages load lazily so importing `wordwise` does not pull in Flask,
SymSpell or proselint.
"""

__version__ = "1.0.0"

_MODULES = {
    'analyzers': 'wordwise.analyzers',
    'ai': 'wordwise.ai',
    'api': 'wordwise.api',
}

_loaded_modules = {}


def __getattr__(name):
    """Lazy load subpackages on first access."""
    if name in _MODULES:
        if name not in _loaded_modules:
            import importlib
            _loaded_modules[name] = importlib.import_module(_MODULES[name])
        return _loaded_modules[name]
    raise AttributeError(f"module 'wordwise' has no attribute '{name}'")


def get_status() -> dict:
    """Version plus analyzer and AI availability."""
    from .analyzers import get_status as analyzer_status
    status = analyzer_status()
    status['version'] = __version__
    status['ai'] = __getattr__('ai').get_status()
    return status
