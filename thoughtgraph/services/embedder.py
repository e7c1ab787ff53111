"""
Embedding of thoughts and search queries with soft failure.
"""

from typing import List, Optional

from ..utils.bedrock_embed import BedrockEmbed, BedrockEmbedError
from ..utils.config import BedrockEmbedConfig, config
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def embedding_text(summary: Optional[str], raw_transcript: str) -> str:
    """Salient text of a thought: best available summary followed by the transcript."""
    return ' '.join(part for part in (summary or '', raw_transcript or '') if part.strip())


class Embedder:
    """Wraps the embedding service so that every failure becomes None.

    Callers treat None as "skip the vector-dependent steps", never as an error.
    """

    def __init__(self, embed: Optional[BedrockEmbed] = None, embed_config: Optional[BedrockEmbedConfig] = None):
        self.embed_config = embed_config or config.bedrock_embed
        if embed is None and self.embed_config.enabled:
            embed = BedrockEmbed(self.embed_config)
        self.embed_client = embed

        logger.info(f'Initialized Embedder (embedding available: {self.available})')

    @property
    def available(self) -> bool:
        return self.embed_client is not None

    def embed(self, text: str) -> Optional[List[float]]:
        """Embed thought text for storage."""
        if not self.available:
            return None
        try:
            return self.embed_client.embed_document(text)
        except BedrockEmbedError as e:
            logger.warning(f'Document embedding unavailable: {e}')
            return None

    def embed_query(self, text: str) -> Optional[List[float]]:
        """Embed search query text."""
        if not self.available:
            return None
        try:
            return self.embed_client.embed_query(text)
        except BedrockEmbedError as e:
            logger.warning(f'Query embedding unavailable: {e}')
            return None
