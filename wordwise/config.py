"""
WordWise Engine Configuration
=============================
Centralized configuration for the analysis pipeline.

Configuration can be set via:
1. Environment variables (WW_SCHEDULER_FAST_DELAY=0.4)
2. Config file (wordwise_config.json)
3. Direct API calls (config.set('scheduler.fast_delay', 0.4))

All settings have sensible defaults so the engine runs with no file present.
"""

import os
import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from config_logging import get_logger

__version__ = "1.0.0"

logger = get_logger('wordwise.config')

# Default configuration path
CONFIG_FILE = Path(__file__).parent.parent / "wordwise_config.json"


@dataclass
class ExtractorConfig:
    """Text extraction configuration."""
    block_separator: str = ""  # Characters inserted between blocks in plain text


@dataclass
class SpellingConfig:
    """Spelling analyzer configuration."""
    enabled: bool = True
    max_edit_distance: int = 2
    prefix_length: int = 7
    min_word_length: int = 2
    custom_dictionary: Optional[str] = None


@dataclass
class GrammarConfig:
    """Rule-based grammar analyzer configuration."""
    enabled: bool = True
    disabled_rules: list = field(default_factory=list)


@dataclass
class StyleConfig:
    """Style analyzer configuration."""
    enabled: bool = True
    use_proselint: bool = True
    long_sentence_words: int = 25
    very_long_sentence_words: int = 35
    skip_checks: list = field(default_factory=lambda: [
        "passive_voice",      # Covered by the heuristic passive check
        "contractions",
    ])


@dataclass
class LanguageToolConfig:
    """LanguageTool configuration (needs Java, off by default)."""
    enabled: bool = False
    language: str = "en-US"
    disabled_rules: list = field(default_factory=lambda: [
        "WHITESPACE_RULE",    # Spacing is handled by the grammar rules
        "MORFOLOGIK_RULE_EN_US",  # Spelling is handled by SymSpell
    ])


@dataclass
class SEOConfig:
    """SEO analyzer thresholds."""
    enabled: bool = True
    title_min: int = 30
    title_max: int = 60
    meta_min: int = 120
    meta_max: int = 160
    min_words: int = 300
    max_paragraph_words: int = 150
    keyword_density_min: float = 0.5
    keyword_density_max: float = 2.5


@dataclass
class ReadabilityConfig:
    """Readability analysis configuration."""
    enabled: bool = True
    target_grade_level: int = 8
    grade_tolerance: int = 2
    max_avg_sentence_length: int = 20
    complex_word_ratio: float = 0.15


@dataclass
class MetricsConfig:
    """Document metrics configuration."""
    enabled: bool = True
    words_per_minute: int = 200


@dataclass
class SchedulerConfig:
    """Tier debounce and timeout configuration (seconds)."""
    instant_delay: float = 0.0
    fast_delay: float = 0.6
    deep_delay: float = 2.0
    ai_delay: float = 2.0
    analyzer_timeout: float = 10.0
    use_remote_deep: bool = False


@dataclass
class DedupConfig:
    """Deduplication policy data."""
    conflicting_categories: list = field(default_factory=lambda: [
        ["spelling", "grammar"],
        ["style", "grammar"],
    ])
    client_priority: int = 1
    server_priority: int = 2
    ai_priority: int = 3


@dataclass
class CacheConfig:
    """Analysis result cache configuration."""
    max_size: int = 1000
    default_ttl: float = 300.0
    persistent_path: Optional[str] = None


@dataclass
class AIConfig:
    """AI enhancement queue configuration."""
    enabled: bool = True
    batch_delay: float = 1.0
    max_batch_size: int = 10
    cache_ttl: float = 3600.0
    daily_limit: int = 1000
    # Run the additional-issue detection pass after enhancement
    detect_enabled: bool = False


@dataclass
class RemoteConfig:
    """Remote analysis endpoint configuration."""
    base_url: Optional[str] = None
    timeout: float = 15.0


@dataclass
class LLMConfig:
    """OpenAI-compatible chat completion endpoint."""
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    provider: str = "openai"  # openai or azure
    deployment: Optional[str] = None  # azure deployment, defaults to model
    api_version: str = "2024-12-01-preview"
    temperature: float = 0.3
    max_tokens: int = 2000
    timeout: float = 60.0


@dataclass
class WordWiseConfig:
    """Master engine configuration."""
    extractor: ExtractorConfig = field(default_factory=ExtractorConfig)
    spelling: SpellingConfig = field(default_factory=SpellingConfig)
    grammar: GrammarConfig = field(default_factory=GrammarConfig)
    style: StyleConfig = field(default_factory=StyleConfig)
    languagetool: LanguageToolConfig = field(default_factory=LanguageToolConfig)
    seo: SEOConfig = field(default_factory=SEOConfig)
    readability: ReadabilityConfig = field(default_factory=ReadabilityConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


# Global configuration instance
_config: Optional[WordWiseConfig] = None


def get_config() -> WordWiseConfig:
    """Get the global engine configuration."""
    global _config
    if _config is None:
        _config = _load_config()
    return _config


def _load_config(path: Optional[Path] = None) -> WordWiseConfig:
    """Load configuration from file and environment."""
    config = WordWiseConfig()
    path = path or CONFIG_FILE

    if path.exists():
        try:
            with open(path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
            _apply_dict_to_config(config, file_config)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Could not load config file: {e}", path=str(path))

    _apply_env_to_config(config)

    return config


def load_config(path: Path) -> WordWiseConfig:
    """Load configuration from an explicit file and make it the global one."""
    global _config
    _config = _load_config(Path(path))
    return _config


def _apply_dict_to_config(config: WordWiseConfig, data: Dict[str, Any]):
    """Apply dictionary values to config object."""
    for section_name, section_data in data.items():
        if hasattr(config, section_name) and isinstance(section_data, dict):
            section = getattr(config, section_name)
            for key, value in section_data.items():
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    logger.warning(f"Unknown config key ignored: {section_name}.{key}")


def _apply_env_to_config(config: WordWiseConfig):
    """Apply environment variables to config."""
    env_mappings = {
        'WW_EXTRACTOR_BLOCK_SEPARATOR': ('extractor', 'block_separator', str),
        'WW_SPELLING_ENABLED': ('spelling', 'enabled', _parse_bool),
        'WW_SPELLING_MAX_EDIT_DISTANCE': ('spelling', 'max_edit_distance', int),
        'WW_GRAMMAR_ENABLED': ('grammar', 'enabled', _parse_bool),
        'WW_STYLE_ENABLED': ('style', 'enabled', _parse_bool),
        'WW_STYLE_USE_PROSELINT': ('style', 'use_proselint', _parse_bool),
        'WW_LANGUAGETOOL_ENABLED': ('languagetool', 'enabled', _parse_bool),
        'WW_LANGUAGETOOL_LANGUAGE': ('languagetool', 'language', str),
        'WW_SEO_ENABLED': ('seo', 'enabled', _parse_bool),
        'WW_READABILITY_ENABLED': ('readability', 'enabled', _parse_bool),
        'WW_READABILITY_TARGET_GRADE': ('readability', 'target_grade_level', int),
        'WW_SCHEDULER_FAST_DELAY': ('scheduler', 'fast_delay', float),
        'WW_SCHEDULER_DEEP_DELAY': ('scheduler', 'deep_delay', float),
        'WW_SCHEDULER_AI_DELAY': ('scheduler', 'ai_delay', float),
        'WW_SCHEDULER_ANALYZER_TIMEOUT': ('scheduler', 'analyzer_timeout', float),
        'WW_SCHEDULER_USE_REMOTE_DEEP': ('scheduler', 'use_remote_deep', _parse_bool),
        'WW_CACHE_MAX_SIZE': ('cache', 'max_size', int),
        'WW_CACHE_DEFAULT_TTL': ('cache', 'default_ttl', float),
        'WW_CACHE_PERSISTENT_PATH': ('cache', 'persistent_path', str),
        'WW_AI_ENABLED': ('ai', 'enabled', _parse_bool),
        'WW_AI_BATCH_DELAY': ('ai', 'batch_delay', float),
        'WW_AI_DAILY_LIMIT': ('ai', 'daily_limit', int),
        'WW_AI_DETECT_ENABLED': ('ai', 'detect_enabled', _parse_bool),
        'WW_REMOTE_BASE_URL': ('remote', 'base_url', str),
        'WW_REMOTE_TIMEOUT': ('remote', 'timeout', float),
        'WW_LLM_ENDPOINT': ('llm', 'endpoint', str),
        'WW_LLM_API_KEY': ('llm', 'api_key', str),
        'WW_LLM_MODEL': ('llm', 'model', str),
        'WW_LLM_PROVIDER': ('llm', 'provider', str),
        'WW_LLM_DEPLOYMENT': ('llm', 'deployment', str),
        'WW_LLM_API_VERSION': ('llm', 'api_version', str),
    }

    for env_var, (section, key, converter) in env_mappings.items():
        value = os.environ.get(env_var)
        if value is not None:
            try:
                section_obj = getattr(config, section)
                setattr(section_obj, key, converter(value))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Invalid env var {env_var}={value}: {e}")


def _parse_bool(value: str) -> bool:
    """Parse boolean from string."""
    return value.lower() in ('true', '1', 'yes', 'on')


def is_enabled(section_name: str) -> bool:
    """Check if an analyzer section is enabled."""
    config = get_config()
    if hasattr(config, section_name):
        section = getattr(config, section_name)
        return getattr(section, 'enabled', False)
    return False


def get(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dot-notation key.

    Example: get('scheduler.fast_delay') -> 0.6
    """
    config = get_config()
    parts = key.split('.')

    obj = config
    for part in parts:
        if hasattr(obj, part):
            obj = getattr(obj, part)
        else:
            return default

    return obj


def set(key: str, value: Any):
    """
    Set a configuration value by dot-notation key.

    Example: set('languagetool.enabled', True)
    """
    config = get_config()
    parts = key.split('.')

    if len(parts) < 2:
        raise ValueError(f"Key must be in format 'section.key': {key}")

    section_name = parts[0]
    attr_name = parts[1]

    if hasattr(config, section_name):
        section = getattr(config, section_name)
        if hasattr(section, attr_name):
            setattr(section, attr_name, value)
        else:
            raise ValueError(f"Unknown config key: {attr_name}")
    else:
        raise ValueError(f"Unknown config section: {section_name}")


def to_dict(config: Optional[WordWiseConfig] = None) -> Dict[str, Any]:
    """Serialize configuration, leaving secrets out."""
    data = asdict(config or get_config())
    data['llm'].pop('api_key', None)
    return data


def save_config(path: Optional[Path] = None):
    """Save current configuration to file."""
    path = path or CONFIG_FILE
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(to_dict(), f, indent=2)


def reset_config():
    """Reset configuration to defaults."""
    global _config
    _config = WordWiseConfig()


def conflicting_pairs() -> List[tuple]:
    """Category pairs that may not share a span."""
    return [tuple(pair) for pair in get_config().dedup.conflicting_categories]
