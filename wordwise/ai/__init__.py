"""
AI Enhancement for WordWise
===========================
Selective LLM rewriting of Suggestions.

Features:
- Eligibility filtering (style/SEO, fix-less and contextual spelling suggestions)
- Per-category batching with a quiet-period timer
- Cached results keyed by suggestion ids and document context
- Daily usage quota

Requires an OpenAI-compatible endpoint (WW_LLM_ENDPOINT, WW_LLM_API_KEY).
"""

__version__ = "1.0.0"

# Lazy imports
_llm_client = None
_usage_limiter = None


def get_llm_client():
    """Get the shared LLMClient instance (lazy loaded)."""
    global _llm_client
    if _llm_client is None:
        from .llm import LLMClient
        _llm_client = LLMClient.from_config()
    return _llm_client


def get_usage_limiter():
    """Get the shared UsageLimiter instance (lazy loaded)."""
    global _usage_limiter
    if _usage_limiter is None:
        from .usage import UsageLimiter
        _usage_limiter = UsageLimiter.from_config()
    return _usage_limiter


def reset():
    """Drop the shared instances (for testing)."""
    global _llm_client, _usage_limiter
    _llm_client = None
    _usage_limiter = None


def is_available() -> bool:
    """Check if an LLM endpoint is configured."""
    from ..config import get_config
    return get_config().ai.enabled and get_llm_client().is_configured


def get_status() -> dict:
    """Get AI enhancement status."""
    from ..config import get_config
    config = get_config()
    client = get_llm_client()
    return {
        'available': config.ai.enabled and client.is_configured,
        'enabled': config.ai.enabled,
        'configured': client.is_configured,
        'provider': client.provider,
        'model': client.model,
        'usage': get_usage_limiter().get_usage(),
    }


def get_service(cache=None):
    """Build an EnhancementService over the shared client and limiter."""
    from ..config import get_config
    from .enhancement import EnhancementService
    return EnhancementService(get_llm_client(), cache=cache,
                              usage_limiter=get_usage_limiter(),
                              cache_ttl=get_config().ai.cache_ttl)
