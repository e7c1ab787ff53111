"""
MCP Interface Layer using fastmcp for thought capture and retrieval.
"""
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from thoughtgraph.models.core import THOUGHT_STATUSES, THOUGHT_TYPES, SearchFilters
from thoughtgraph.services.connection_finder import ConnectionFinder
from thoughtgraph.services.embedder import Embedder
from thoughtgraph.services.ingestion_pipeline import IngestionError, IngestionPipeline
from thoughtgraph.services.search import HybridSearch, SearchError
from thoughtgraph.services.thought_export import ExportError, ThoughtExporter
from thoughtgraph.utils.config import config
from thoughtgraph.utils.health_check import get_system_info
from thoughtgraph.utils.logging_config import get_logger
from thoughtgraph.utils.opensearch_client import OpenSearchClient
from thoughtgraph.utils.timestamp_utils import parse_datetime

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Thought Graph')

_store: Optional[OpenSearchClient] = None
_pipeline: Optional[IngestionPipeline] = None
_search: Optional[HybridSearch] = None


def _services():
    """Build the shared store, pipeline and search on first use."""
    global _store, _pipeline, _search
    if _pipeline is None:
        _store = OpenSearchClient(config.opensearch)
        _store.create_indexes()
        embedder = Embedder()
        _pipeline = IngestionPipeline(_store, embedder=embedder)
        _search = HybridSearch(_store, embedder=embedder)
    return _store, _pipeline, _search


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


@mcp.tool()
def ingest_thought(user_id: str, transcript: str, language: str = '') -> Dict[str, Any]:
    """Capture a transcript as a new thought and wait for the whole pipeline to finish.

    Args:
        user_id: User ID
        transcript: Raw transcript text
        language: Language tag of the transcript (default from configuration)

    Returns:
        Processing result with the thought id and the number of new connections
    """
    if not user_id or not user_id.strip():
        raise ValueError('User ID is required')
    if not transcript or not transcript.strip():
        raise ValueError('Transcript is required')

    _, pipeline, _ = _services()
    try:
        result = pipeline.ingest_from_transcript(user_id, transcript, language or None)
    except IngestionError as e:
        logger.error(f'Ingestion error in MCP ingest: {e}')
        raise Exception(f'Thought ingestion failed: {e}')
    return _jsonable(asdict(result))


@mcp.tool()
def capture_thought(user_id: str, transcript: str, language: str = '') -> Dict[str, Any]:
    """Save a transcript as a new thought now and enrich it in the background.

    Returns as soon as the raw thought is stored; classification, embedding
    and connection discovery finish later.

    Args:
        user_id: User ID
        transcript: Raw transcript text
        language: Language tag of the transcript (default from configuration)

    Returns:
        The new thought id and its processing state
    """
    if not user_id or not user_id.strip():
        raise ValueError('User ID is required')
    if not transcript or not transcript.strip():
        raise ValueError('Transcript is required')

    _, pipeline, _ = _services()
    try:
        thought_id, _ = pipeline.submit_transcript(user_id, transcript, language or None)
    except IngestionError as e:
        logger.error(f'Ingestion error in MCP capture: {e}')
        raise Exception(f'Thought capture failed: {e}')
    return {'thought_id': thought_id, 'status': 'processing'}


@mcp.tool()
def reprocess_thought(thought_id: str) -> Dict[str, Any]:
    """Re-run classification, embedding and connection discovery for a stored thought.

    Args:
        thought_id: Thought ID
    """
    _, pipeline, _ = _services()
    try:
        result = pipeline.reprocess_thought(thought_id)
    except IngestionError as e:
        logger.error(f'Ingestion error in MCP reprocess: {e}')
        raise Exception(f'Thought reprocessing failed: {e}')
    return _jsonable(asdict(result))


@mcp.tool()
def search_thoughts(user_id: str,
                    query: str,
                    limit: int = 20,
                    type: str = '',
                    priority: int = 0,
                    category: str = '',
                    status: str = '',
                    date_from: str = '',
                    date_to: str = '') -> List[Dict[str, Any]]:
    """Hybrid (semantic + full-text) search over a user's thoughts.

    Args:
        user_id: User ID
        query: Natural language query
        limit: Maximum number of results to return (default: 20)
        type: Only thoughts of this type (task, idea, note, reminder, journal)
        priority: Only thoughts with this priority (1-5, 0 for any)
        category: Only thoughts carrying this category label
        status: Only thoughts in this status
        date_from: Earliest creation time (ISO 8601)
        date_to: Latest creation time (ISO 8601)

    Returns:
        Ranked results with fused score and per-list ranks
    """
    if not user_id or not user_id.strip():
        raise ValueError('User ID is required')
    if not query or not query.strip():
        return []
    if type and type not in THOUGHT_TYPES:
        raise ValueError(f'Unknown thought type: {type}')
    if status and status not in THOUGHT_STATUSES:
        raise ValueError(f'Unknown thought status: {status}')

    filters = SearchFilters(type=type or None,
                            priority=priority or None,
                            category=category or None,
                            status=status or None,
                            date_from=parse_datetime(date_from),
                            date_to=parse_datetime(date_to))

    _, _, search = _services()
    try:
        results = search.search(user_id, query, filters, limit)
    except SearchError as e:
        logger.error(f'Search error in MCP search: {e}')
        raise Exception(f'Thought search failed: {e}')

    logger.debug(f'MCP search returned {len(results)} thoughts for user {user_id}')
    return [_jsonable(asdict(result)) for result in results]


@mcp.tool()
def get_thought_connections(user_id: str, thought_id: str) -> List[Dict[str, Any]]:
    """List thoughts semantically connected to a thought.

    Args:
        user_id: User ID
        thought_id: Thought ID

    Returns:
        List of {'thought_id', 'similarity'} for the connected thoughts, strongest first
    """
    store, _, _ = _services()
    connections = ConnectionFinder(store).get_connections(thought_id, user_id)
    return [{'thought_id': c.other(thought_id), 'similarity': c.similarity} for c in connections]


@mcp.tool()
def export_thoughts(user_id: str,
                    format: str = 'json',
                    type: str = '',
                    status: str = '',
                    date_from: str = '',
                    date_to: str = '') -> Dict[str, Any]:
    """Export a user's thoughts as JSON, CSV or Markdown.

    JSON and CSV exports can be imported again.

    Args:
        user_id: User ID
        format: 'json', 'csv' or 'md'
        type: Only thoughts of this type
        status: Only thoughts in this status (archived ones are included otherwise)
        date_from: Earliest creation time (ISO 8601)
        date_to: Latest creation time (ISO 8601)

    Returns:
        {'filename', 'content_type', 'content'}
    """
    if not user_id or not user_id.strip():
        raise ValueError('User ID is required')

    filters = SearchFilters(type=type or None,
                            status=status or None,
                            date_from=parse_datetime(date_from),
                            date_to=parse_datetime(date_to))

    store, _, _ = _services()
    try:
        exported = ThoughtExporter(store).export(user_id, format, filters)
    except ExportError as e:
        logger.error(f'Export error in MCP export: {e}')
        raise Exception(f'Thought export failed: {e}')
    return asdict(exported)


@mcp.tool()
def health_status() -> Dict[str, Any]:
    """Report configuration and health of the Bedrock and OpenSearch services."""
    return get_system_info()


if __name__ == '__main__':
    mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)
