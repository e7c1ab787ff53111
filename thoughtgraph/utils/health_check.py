"""
Health reporting for the Bedrock and OpenSearch collaborators.
"""

from typing import Any, Callable, Dict, Optional

from .bedrock_embed import BedrockEmbed
from .bedrock_llm import BedrockLLM
from .config import AppConfig, config
from .logging_config import get_logger
from .opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def _check_component(service: str, build: Optional[Callable[[], Any]], **details: Any) -> Dict[str, Any]:
    """Build a client and run its health check; a None builder means not configured."""
    status: Dict[str, Any] = {'service': service, 'configured': build is not None, **details}
    if build is None:
        status['healthy'] = False
        return status

    try:
        status['healthy'] = bool(build().health_check())
    except Exception as e:
        logger.warning(f'{service} health check failed: {e}')
        status['healthy'] = False
        status['error'] = str(e)
    return status


def get_health_status(app_config: AppConfig = config) -> Dict[str, Dict[str, Any]]:
    """Per-component status dicts keyed by component name."""
    llm, embed, store = app_config.bedrock_llm, app_config.bedrock_embed, app_config.opensearch
    return {
        'bedrock_llm': _check_component('Amazon Bedrock LLM', (lambda: BedrockLLM(llm)) if llm.enabled else None,
                                        model=llm.model_id),
        'bedrock_embed': _check_component('Amazon Bedrock Embed',
                                          (lambda: BedrockEmbed(embed)) if embed.enabled else None,
                                          model=embed.model_id),
        'opensearch': _check_component('Amazon OpenSearch', lambda: OpenSearchClient(store), endpoint=store.endpoint),
    }


def summarize(health_status: Dict[str, Dict[str, Any]]) -> bool:
    """Healthy when every configured component is healthy.

    Unconfigured enrichment services do not count, the pipeline runs without them.
    """
    return all(status['healthy'] or not status['configured'] for status in health_status.values())


def check_health(app_config: AppConfig = config) -> bool:
    healthy = summarize(get_health_status(app_config))
    if healthy:
        logger.info('All configured components are healthy')
    else:
        logger.warning('Some components are unhealthy')
    return healthy


def get_system_info(app_config: AppConfig = config) -> Dict[str, Any]:
    """Service identity, effective tuning values and component health."""
    health_status = get_health_status(app_config)
    return {
        'service_name': 'thoughtgraph',
        'version': '0.1.0',
        'configuration': {
            'bedrock_llm_model': app_config.bedrock_llm.model_id,
            'bedrock_relevance_model': app_config.bedrock_llm.relevance_model_id,
            'bedrock_embed_model': app_config.bedrock_embed.model_id,
            'relevance_threshold': app_config.pipeline.relevance_threshold,
            'connection_threshold': app_config.pipeline.connection_threshold,
            'connection_top_k': app_config.pipeline.connection_top_k,
            'rrf_k': app_config.search.rrf_k,
            'aws_region': app_config.bedrock_llm.region
        },
        'healthy': summarize(health_status),
        'health_status': health_status
    }
