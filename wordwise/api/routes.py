"""
Analysis Flask Routes
=====================
Server side of the remote analysis tiers.

POST /api/analysis/fast        instant + fast analyzers on {text}
POST /api/analysis/spell       spelling only
POST /api/analysis/deep        SEO / readability / metrics, cached one hour
POST /api/analysis/ai-enhance  EnhancementResults for a document snapshot
POST /api/analysis/ai-detect   AI-found issues the analyzers missed
GET  /api/analysis/cache-stats
"""

import threading
import time
from functools import wraps
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, current_app, g, jsonify, request

from config_logging import (
    RateLimitError, RemoteServiceError, ValidationError, WordWiseError,
    get_config as get_app_config, get_logger, get_rate_limiter, handle_errors,
)

from ..ai.context import DocumentContextExtractor
from ..ai.detection import detections_to_suggestions
from ..ai.enhancement import should_enhance
from ..analyzers import ANALYSIS_TIERS, DEEP, FAST, INSTANT, TIER_NAMESPACES, build_analyzers
from ..cache import AnalysisCache
from ..dedup import sort_suggestions
from ..factory import suggestions_from_findings
from ..models import DocumentMetadata, Suggestion

logger = get_logger('wordwise.api')

analysis_blueprint = Blueprint('analysis', __name__)

DEEP_CACHE_TTL = 3600

_analyzers: Dict[str, list] = {}
_analyzers_lock = threading.Lock()


def get_analyzers(tier: str) -> list:
    """Shared analyzer instances per tier (lazy loaded)."""
    with _analyzers_lock:
        if tier not in _analyzers:
            _analyzers[tier] = build_analyzers(tier)
        return _analyzers[tier]


def reset_analyzers():
    """Drop the shared analyzers (for testing)."""
    with _analyzers_lock:
        _analyzers.clear()


# =============================================================================
# STANDARDIZED ERROR HANDLING DECORATOR
# =============================================================================

def _error_response(code: str, message: str, status: int, **extra):
    error = {
        'code': code,
        'message': message,
        'correlation_id': getattr(g, 'correlation_id', 'unknown'),
    }
    error.update(extra)
    return jsonify({'success': False, 'error': error}), status


def handle_analysis_errors(f):
    """
    Decorator for standardized API error handling in analysis routes.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)

            elapsed = time.time() - start_time
            if elapsed > 5.0:
                logger.warning(f"Slow analysis API call: {f.__name__} took {elapsed:.1f}s")

            return result

        except ValidationError as e:
            logger.warning(f"Validation error in {f.__name__}: {e.message}")
            return _error_response(e.code, e.message, 400)
        except RateLimitError as e:
            logger.warning(f"Rate limited in {f.__name__}", retry_after=e.retry_after)
            return _error_response(e.code, e.message, 429, retry_after=e.retry_after)
        except RemoteServiceError as e:
            logger.error(f"Upstream error in {f.__name__}: {e.message}")
            return _error_response(e.code, e.message, 502)
        except WordWiseError as e:
            logger.error(f"{e.code} in {f.__name__}: {e.message}")
            return _error_response(e.code, e.message, e.status_code)
        except Exception as e:
            logger.exception(f"Unexpected error in {f.__name__}: {e}")
            return _error_response('INTERNAL_ERROR', 'An unexpected error occurred', 500)

    return decorated


# =============================================================================
# REQUEST HELPERS
# =============================================================================

@analysis_blueprint.before_request
def enforce_rate_limit():
    """Per-client request limit on every analysis endpoint."""
    config = get_app_config()
    if not config.rate_limit_enabled:
        return None
    limiter = get_rate_limiter()
    client = request.remote_addr or 'unknown'
    if not limiter.is_allowed(client):
        retry_after = limiter.get_retry_after(client)
        logger.warning("Request rate limit exceeded", client=client, retry_after=retry_after)
        return _error_response('RATE_LIMIT', 'Too many requests', 429, retry_after=retry_after)
    return None


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _text_field(data: Dict[str, Any], name: str = 'text') -> str:
    text = data.get(name)
    if not isinstance(text, str):
        raise ValidationError(f"'{name}' must be a string", field=name)
    limit = get_app_config().max_text_chars
    if len(text) > limit:
        raise ValidationError(f"'{name}' exceeds {limit} characters", field=name)
    return text


@handle_errors(logger)
def _metadata_field(data: Dict[str, Any]) -> DocumentMetadata:
    raw = data.get('metadata', data.get('documentMetadata'))
    if raw is not None and not isinstance(raw, dict):
        raise ValidationError("'metadata' must be an object", field='metadata')
    return DocumentMetadata.from_dict(raw)


def _string_list(data: Dict[str, Any], name: str) -> Optional[List[str]]:
    value = data.get(name)
    if value is not None and (
            not isinstance(value, list) or not all(isinstance(i, str) for i in value)):
        raise ValidationError(f"'{name}' must be a list of strings", field=name)
    return value


def _ai_service(capability: str = 'enhance'):
    """The configured EnhancementService, or None when it cannot serve `capability`."""
    service = current_app.extensions.get('wordwise_ai')
    if service is None or not getattr(service.enhancer, 'is_configured', True):
        return None
    if capability == 'detect' and not service.can_detect:
        return None
    return service


def _cache() -> AnalysisCache:
    return current_app.extensions['wordwise_cache']


def run_tiers(tiers, text: str, metadata: DocumentMetadata) -> Tuple[List[Suggestion], Dict[str, Any]]:
    """Run the analyzers of the given tiers synchronously."""
    suggestions: List[Suggestion] = []
    metrics: Dict[str, Any] = {}
    for tier in tiers:
        findings = []
        with logger.log_operation(f"{tier} analysis", tier=tier, chars=len(text)):
            for analyzer in get_analyzers(tier):
                result = analyzer.run(text, metadata)
                if not result.success:
                    logger.warning(f"{result.analyzer_name} failed: {result.error}", tier=tier)
                findings.extend(f for f in result.findings if f.category in TIER_NAMESPACES[tier])
                metrics.update(result.metrics)
        suggestions.extend(suggestions_from_findings(findings, text))
    metrics.pop('finding_count', None)
    return sort_suggestions(suggestions), metrics


def _analysis_response(suggestions: List[Suggestion], metrics: Dict[str, Any]):
    return {
        'success': True,
        'suggestions': [s.to_dict() for s in suggestions],
        'metrics': metrics,
    }


# =============================================================================
# ROUTES
# =============================================================================

@analysis_blueprint.route('/fast', methods=['POST'])
@handle_analysis_errors
def analyze_fast():
    data = _json_body()
    text = _text_field(data)
    suggestions, metrics = run_tiers((INSTANT, FAST), text, _metadata_field(data))
    return jsonify(_analysis_response(suggestions, metrics))


@analysis_blueprint.route('/spell', methods=['POST'])
@handle_analysis_errors
def analyze_spelling():
    data = _json_body()
    text = _text_field(data)
    suggestions, metrics = run_tiers((INSTANT,), text, DocumentMetadata())
    return jsonify(_analysis_response(suggestions, metrics))


@analysis_blueprint.route('/deep', methods=['POST'])
@handle_analysis_errors
def analyze_deep():
    data = _json_body()
    text = _text_field(data)
    metadata = _metadata_field(data)
    enable_seo = data.get('enableSEOChecks', True)
    if not isinstance(enable_seo, bool):
        raise ValidationError("'enableSEOChecks' must be a boolean", field='enableSEOChecks')

    cache = _cache()
    key = AnalysisCache.make_key('deep', text, metadata.cache_key(), enable_seo)
    cached = cache.get(key)
    if cached is not None:
        return jsonify(cached)

    suggestions, metrics = run_tiers((DEEP,), text, metadata)
    if not enable_seo:
        suggestions = [s for s in suggestions if s.category != 'seo']

    response = _analysis_response(suggestions, metrics)
    cache.set(key, response, ttl=DEEP_CACHE_TTL)
    return jsonify(response)


@analysis_blueprint.route('/ai-enhance', methods=['POST'])
@handle_analysis_errors
def ai_enhance():
    data = _json_body()
    snapshot = _text_field(data, 'documentSnapshot')
    metadata = _metadata_field(data)
    target_ids = _string_list(data, 'targetSuggestionIds')

    service = _ai_service()
    if service is None:
        return _error_response('AI_UNAVAILABLE', 'AI enhancement is not configured', 503)

    suggestions, _ = run_tiers(ANALYSIS_TIERS, snapshot, metadata)
    if target_ids is not None:
        wanted = set(target_ids)
        selected = [s for s in suggestions if s.id in wanted]
    else:
        selected = [s for s in suggestions if should_enhance(s)]

    context = DocumentContextExtractor().extract(snapshot, metadata, selected)
    results = service.enhance_results(selected, context)
    logger.info("AI enhancement served", requested=len(selected), returned=len(results))
    return jsonify({'success': True, 'suggestions': [r.to_dict() for r in results]})


@analysis_blueprint.route('/ai-detect', methods=['POST'])
@handle_analysis_errors
def ai_detect():
    data = _json_body()
    text = _text_field(data)
    metadata = _metadata_field(data)
    existing_ids = _string_list(data, 'existingSuggestionIds') or []

    service = _ai_service('detect')
    if service is None:
        return _error_response('AI_UNAVAILABLE', 'AI detection is not configured', 503)

    issues = service.detect_issues(text, metadata, len(existing_ids))
    suggestions = detections_to_suggestions(issues, text, exclude_ids=existing_ids)
    logger.info("AI detection served", reported=len(issues), returned=len(suggestions))
    return jsonify({'success': True,
                    'additionalSuggestions': [s.to_dict() for s in suggestions]})


@analysis_blueprint.route('/cache-stats', methods=['GET'])
@handle_analysis_errors
def cache_stats():
    return jsonify({'success': True, 'data': _cache().stats})
