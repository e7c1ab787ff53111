"""
Ingestion pipeline: classify, persist, embed and link one thought at a time.

Enrichment outages (LLM or embedding) degrade the record instead of failing
it; store failures are fatal and stop the run at the failing step.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Tuple

from ..models.core import Classification, ProcessResult, Thought
from ..utils.config import PipelineConfig, config
from ..utils.logging_config import get_logger
from ..utils.opensearch_client import OpenSearchClient, OpenSearchError
from ..utils.timestamp_utils import to_iso, utc_now
from .classifier import Classifier
from .connection_finder import ConnectionFinder
from .embedder import Embedder, embedding_text

logger = get_logger(__name__)


class IngestionError(Exception):
    """Custom exception for ingestion errors."""
    pass


class ThoughtNotFoundError(IngestionError):
    """Raised when reprocessing an id the store does not know."""
    pass


class IngestionPipeline:
    """Turn raw transcripts into enriched, embedded and connected thoughts."""

    def __init__(self,
                 store: OpenSearchClient,
                 classifier: Optional[Classifier] = None,
                 embedder: Optional[Embedder] = None,
                 connection_finder: Optional[ConnectionFinder] = None,
                 pipeline_config: Optional[PipelineConfig] = None):
        self.store = store
        self.pipeline_config = pipeline_config or config.pipeline
        self.classifier = classifier or Classifier(pipeline_config=self.pipeline_config)
        self.embedder = embedder or Embedder()
        self.connection_finder = connection_finder or ConnectionFinder(store, self.pipeline_config)
        self._executor = ThreadPoolExecutor(max_workers=self.pipeline_config.max_workers,
                                            thread_name_prefix='thought-pipeline')

        logger.info('Initialized IngestionPipeline')

    # -- Entry points --------------------------------------------------------

    def ingest_from_transcript(self,
                               user_id: str,
                               raw_transcript: str,
                               language: Optional[str] = None,
                               source: str = 'voice') -> ProcessResult:
        """
        Create a thought from a raw transcript and run the whole pipeline on it.

        Raises:
            IngestionError: If the thought cannot be persisted
        """
        language = language or self.pipeline_config.default_language
        classification = self.classifier.classify(raw_transcript, language)

        thought = Thought(user_id=user_id, raw_transcript=raw_transcript, language=language, source=source)
        if classification.extraction is not None:
            thought.apply_extraction(classification.extraction)

        self._persist(lambda: self.store.insert_thought(thought), thought.id, 'insert')
        logger.info(f'Ingested thought {thought.id} for user {user_id} '
                    f'(enriched: {classification.extraction is not None})')

        return self._embed_and_connect(thought, classification)

    def reprocess_thought(self, thought_id: str) -> ProcessResult:
        """
        Re-run classification, embedding and connection discovery on a stored thought.

        Raises:
            ThoughtNotFoundError: If the id does not exist
            IngestionError: If a write to the store fails
        """
        thought = self._persist(lambda: self.store.get_thought(thought_id), thought_id, 'load')
        if thought is None:
            logger.error(f'Thought not found for reprocessing: {thought_id}')
            raise ThoughtNotFoundError(f'Thought not found: {thought_id}')

        classification = self.classifier.classify(thought.raw_transcript, thought.language)
        if classification.extraction is not None:
            thought.apply_extraction(classification.extraction)
            self._persist(lambda: self.store.update_thought(thought.id, thought.enrichment_document()), thought.id,
                          'update')

        return self._embed_and_connect(thought, classification)

    # -- Background execution ------------------------------------------------

    def submit_transcript(self,
                          user_id: str,
                          raw_transcript: str,
                          language: Optional[str] = None,
                          source: str = 'voice') -> Tuple[str, Future]:
        """
        Persist the raw thought now and enrich it in the background.

        The caller waits only for the initial insert.

        Returns:
            Tuple of (thought_id, future resolving to the ProcessResult)

        Raises:
            IngestionError: If the initial insert fails
        """
        thought = Thought(user_id=user_id,
                          raw_transcript=raw_transcript,
                          language=language or self.pipeline_config.default_language,
                          source=source)
        self._persist(lambda: self.store.insert_thought(thought), thought.id, 'insert')
        logger.info(f'Captured thought {thought.id} for user {user_id}, queued for processing')
        return thought.id, self.submit_reprocess(thought.id)

    def submit_reprocess(self, thought_id: str) -> Future:
        """Queue a reprocess run; failures are logged and kept on the future."""
        future = self._executor.submit(self.reprocess_thought, thought_id)
        future.add_done_callback(lambda f: _log_background_failure(f, thought_id))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # -- Steps ---------------------------------------------------------------

    def _embed_and_connect(self, thought: Thought, classification: Classification) -> ProcessResult:
        summary = classification.extraction.summary if classification.extraction else thought.summary
        embedding = self.embedder.embed(embedding_text(summary, thought.raw_transcript))

        connections_found = 0
        if embedding is not None:
            thought.embedding = embedding
            self._persist(lambda: self.store.update_thought(thought.id, {
                'embedding': embedding,
                'updated_at': to_iso(utc_now())
            }), thought.id, 'embedding update')
            connections_found = self._persist(
                lambda: self.connection_finder.find_connections(thought.id, thought.user_id, embedding), thought.id,
                'connection upsert')
        else:
            logger.info(f'No embedding for thought {thought.id}, semantic links skipped')

        return ProcessResult(thought_id=thought.id,
                             relevant=classification.relevant,
                             confidence=classification.confidence,
                             extraction=classification.extraction,
                             embedding_generated=embedding is not None,
                             connections_found=connections_found)

    @staticmethod
    def _persist(operation, thought_id: str, step: str):
        try:
            return operation()
        except OpenSearchError as e:
            logger.error(f'Store {step} failed for thought {thought_id}: {e}')
            raise IngestionError(f'Failed to {step} thought {thought_id}: {e}')


def _log_background_failure(future: Future, thought_id: str) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f'Background processing failed for thought {thought_id}: {error}')
