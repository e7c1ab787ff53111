"""
Amazon Bedrock Converse API client used for transcript classification.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig

from .config import BedrockLLMConfig
from .logging_config import get_logger
from .retry import call_with_retry

logger = get_logger(__name__)

Usage = Optional[Dict[str, Any]]


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


def read_stream(events: Optional[Iterable[Dict[str, Any]]]) -> Tuple[str, Usage]:
    """Concatenate text deltas of a converse stream and collect its usage metadata."""
    parts: List[str] = []
    usage: Usage = None
    for event in events or []:
        delta = event.get('contentBlockDelta')
        if delta:
            parts.append(delta['delta'].get('text', ''))
        metadata = event.get('metadata')
        if metadata:
            usage = {**metadata.get('usage', {}), **metadata.get('metrics', {})}
    return ''.join(parts), usage


class BedrockLLM:
    """Streaming Converse client with per-call model choice and bounded retries."""

    def __init__(self, config: BedrockLLMConfig, client: Optional[Any] = None):
        """
        Args:
            config: BedrockLLMConfig with region, models, timeouts and retry policy
            client: Pre-built bedrock-runtime client (tests inject a stub)
        """
        self.config = config
        self.model_id = config.model_id

        # botocore retries are off so the configured timeout bounds every attempt
        boto_config = BotoConfig(connect_timeout=config.timeout,
                                 read_timeout=config.timeout,
                                 retries={'max_attempts': 0})
        self.bedrock_runtime = client or boto3.client('bedrock-runtime', region_name=config.region, config=boto_config)

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def generate_response(self,
                          messages: List[Dict[str, Any]],
                          system_prompt: str,
                          model_id: Optional[str] = None,
                          max_tokens: Optional[int] = None,
                          temperature: Optional[float] = None,
                          stop_sequences: Optional[List[str]] = None) -> Tuple[str, Usage]:
        """
        Run one Converse request and return the streamed text.

        Args:
            messages: Conversation in Bedrock format; a trailing assistant
                message acts as a prefill
            system_prompt: System prompt for the conversation
            model_id: Model to call (configured extraction model if None)
            max_tokens: Output token cap (config default if None)
            temperature: Sampling temperature (config default if None)
            stop_sequences: Sequences that end generation

        Returns:
            Tuple of (response_text, usage and latency metrics)

        Raises:
            BedrockLLMError: If every attempt fails
        """
        model_id = model_id or self.model_id
        request = {
            'modelId': model_id,
            'messages': messages,
            'system': [{
                'text': system_prompt
            }],
            'inferenceConfig': {
                'maxTokens': max_tokens or self.config.max_tokens,
                'temperature': self.config.temperature if temperature is None else temperature,
                'stopSequences': stop_sequences or [],
            }
        }

        def _converse() -> Tuple[str, Usage]:
            response = self.bedrock_runtime.converse_stream(**request)
            return read_stream(response.get('stream'))

        text, usage = call_with_retry(_converse,
                                      attempts=self.config.retry_attempts,
                                      delay=self.config.retry_delay,
                                      label=f'Bedrock LLM ({model_id})',
                                      error=BedrockLLMError)
        logger.debug(f'Bedrock LLM response from {model_id} (length: {len(text)})')
        return text, usage

    def complete(self,
                 prompt: str,
                 system_prompt: str,
                 model_id: Optional[str] = None,
                 max_tokens: Optional[int] = None) -> str:
        """Single user turn in, response text out."""
        messages = [{'role': 'user', 'content': [{'text': prompt}]}]
        text, _ = self.generate_response(messages, system_prompt, model_id=model_id, max_tokens=max_tokens)
        return text

    def health_check(self) -> bool:
        """True when the configured model answers a trivial prompt."""
        try:
            return bool(self.complete('Hi', "Respond with just 'OK'.", max_tokens=10).strip())
        except BedrockLLMError as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False
