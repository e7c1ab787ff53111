"""
Amazon Bedrock embedding client for Titan and Cohere text models.
"""

import json
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig

from .config import BedrockEmbedConfig
from .logging_config import get_logger
from .retry import call_with_retry

logger = get_logger(__name__)

COHERE_DIMENSION = 1024


class BedrockEmbedError(Exception):
    """Custom exception for Bedrock embedding errors."""
    pass


def _titan_request(text: str, input_type: str, dimension: int) -> Dict[str, Any]:
    return {'inputText': text, 'dimensions': dimension}


def _titan_vector(response: Dict[str, Any]) -> Optional[List[float]]:
    return response.get('embedding')


def _cohere_request(text: str, input_type: str, dimension: int) -> Dict[str, Any]:
    if dimension != COHERE_DIMENSION:
        raise BedrockEmbedError(f'Cohere models only support {COHERE_DIMENSION} dimensions, got {dimension}')
    return {'input_type': input_type, 'texts': [text]}


def _cohere_vector(response: Dict[str, Any]) -> Optional[List[float]]:
    embeddings = response.get('embeddings') or []
    return embeddings[0] if embeddings else None


# model family marker -> (request builder, response reader)
MODEL_FAMILIES = {
    'titan': (_titan_request, _titan_vector),
    'cohere': (_cohere_request, _cohere_vector),
}


class BedrockEmbed:
    """Embedding client returning vectors of the configured dimension."""

    def __init__(self, config: BedrockEmbedConfig, client: Optional[Any] = None):
        """
        Args:
            config: BedrockEmbedConfig with region, model, dimension and retry policy
            client: Pre-built bedrock-runtime client (tests inject a stub)
        """
        self.config = config
        self.model_id = config.model_id
        self.dimension = config.dimension

        boto_config = BotoConfig(connect_timeout=config.timeout,
                                 read_timeout=config.timeout,
                                 retries={'max_attempts': 0})
        self.bedrock = client or boto3.client(service_name='bedrock-runtime',
                                              region_name=config.region,
                                              config=boto_config)

        logger.info(f'Initialized Bedrock Embed client with model: {self.model_id} ({self.dimension} dimensions)')

    def _family(self):
        model = self.model_id.lower()
        for marker, family in MODEL_FAMILIES.items():
            if marker in model:
                return family
        raise BedrockEmbedError(f'Unsupported embedding model: {self.model_id}')

    def _invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:

        def _call() -> Dict[str, Any]:
            response = self.bedrock.invoke_model(body=json.dumps(body),
                                                 modelId=self.model_id,
                                                 accept='application/json',
                                                 contentType='application/json')
            return json.loads(response.get('body').read())

        return call_with_retry(_call,
                               attempts=self.config.retry_attempts,
                               delay=self.config.retry_delay,
                               label='Bedrock Embed',
                               error=BedrockEmbedError)

    def _embed(self, text: str, input_type: str) -> List[float]:
        """
        Embed text with the configured model family.

        Raises:
            BedrockEmbedError: On blank input, unsupported model, failed call
                or a vector of the wrong dimension
        """
        if not text or not text.strip():
            raise BedrockEmbedError('Cannot embed empty text')

        build_request, read_vector = self._family()
        vector = read_vector(self._invoke(build_request(text, input_type, self.dimension)))

        if not vector or len(vector) != self.dimension:
            raise BedrockEmbedError(f'Expected {self.dimension}-dimension embedding, got {len(vector or [])}')
        return [float(v) for v in vector]

    def embed_document(self, text: str) -> List[float]:
        """Embedding for stored thought text."""
        return self._embed(text, 'search_document')

    def embed_query(self, text: str) -> List[float]:
        """Embedding for a search query."""
        return self._embed(text, 'search_query')

    def health_check(self) -> bool:
        try:
            return len(self.embed_document('test')) == self.dimension
        except BedrockEmbedError as e:
            logger.error(f'Bedrock Embed health check failed: {e}')
            return False
