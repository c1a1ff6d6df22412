"""
WordWise HTTP surface.

Usage:
    from wordwise.api import create_app
    app = create_app()
"""

from typing import Optional

from flask import Flask, g, request

from config_logging import StructuredLogger, get_config as get_app_config, get_logger

from ..cache import AnalysisCache
from .routes import analysis_blueprint

logger = get_logger('wordwise.api')


def create_app(cache: Optional[AnalysisCache] = None, enhancement_service=None) -> Flask:
    """
    Build the Flask app and register the analysis blueprint.

    `cache` defaults to one built from wordwise.config. `enhancement_service`
    defaults to the shared LLM-backed service when AI is enabled.
    """
    app = Flask(__name__)
    app_config = get_app_config()
    app.config['DEBUG'] = app_config.debug

    cache = cache or AnalysisCache.from_config()
    if enhancement_service is None:
        from ..config import get_config
        if get_config().ai.enabled:
            from .. import ai
            enhancement_service = ai.get_service(cache=cache)

    app.extensions['wordwise_cache'] = cache
    app.extensions['wordwise_ai'] = enhancement_service

    @app.before_request
    def assign_correlation_id():
        correlation_id = request.headers.get('X-Correlation-ID') or StructuredLogger.new_correlation_id()
        StructuredLogger.set_correlation_id(correlation_id)
        g.correlation_id = correlation_id

    @app.after_request
    def echo_correlation_id(response):
        response.headers['X-Correlation-ID'] = getattr(g, 'correlation_id', '')
        return response

    app.register_blueprint(analysis_blueprint, url_prefix='/api/analysis')
    logger.info("Analysis API registered", ai_enabled=enhancement_service is not None)
    return app
