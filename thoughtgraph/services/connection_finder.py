"""
Similarity-graph construction between a user's thoughts.
"""

import math
from typing import List, Optional, Sequence

from ..models.core import Connection
from ..utils.config import PipelineConfig, config
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero length."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class ConnectionFinder:
    """Materialize an undirected edge for every close neighbour of a thought."""

    def __init__(self, store: OpenSearchClient, pipeline_config: Optional[PipelineConfig] = None):
        self.store = store
        self.pipeline_config = pipeline_config or config.pipeline

    def find_connections(self, thought_id: str, user_id: str, embedding: Optional[List[float]] = None) -> int:
        """
        Link a thought to its nearest neighbours above the similarity threshold.

        Args:
            thought_id: Thought whose neighbours are searched
            user_id: Owner; only the same user's thoughts are considered
            embedding: The thought's vector, loaded from the store if omitted

        Returns:
            Number of neighbours that passed the threshold (not rows changed)

        Raises:
            OpenSearchError: If the neighbour query or an upsert fails
        """
        if embedding is None:
            thought = self.store.get_thought(thought_id)
            embedding = thought.embedding if thought else None
        if not embedding:
            logger.debug(f'Thought {thought_id} has no embedding, skipping connection discovery')
            return 0

        neighbours = self.store.vector_search(user_id=user_id,
                                              query_vector=embedding,
                                              top_k=self.pipeline_config.connection_top_k,
                                              exclude_id=thought_id,
                                              include_embedding=True)

        threshold = self.pipeline_config.connection_threshold
        found = 0
        for neighbour in neighbours:
            vector = neighbour['document'].get('embedding')
            if not vector or neighbour['id'] == thought_id:
                continue

            # similarity = 1 - cosine distance
            similarity = _clamp_unit(cosine_similarity(embedding, vector))
            if similarity < threshold:
                continue

            connection = Connection.between(thought_id, neighbour['id'], user_id, similarity)
            result = self.store.upsert_connection(connection)
            logger.debug(f'Connection {connection.key} ({similarity:.3f}): {result}')
            found += 1

        if found:
            logger.info(f'Found {found} connections for thought {thought_id}')
        return found

    def get_connections(self, thought_id: str, user_id: str) -> List[Connection]:
        """Stored connections touching a thought, strongest first."""
        return self.store.get_connections(user_id=user_id, thought_id=thought_id)


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))
