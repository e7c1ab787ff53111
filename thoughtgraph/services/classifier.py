"""
Thought classification with a two-step LLM process: relevance filter, then structured extraction.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from ..models.core import (DEFAULT_PRIORITY, DEFAULT_TYPE, ENTITY_KINDS, MAX_PRIORITY, MIN_PRIORITY,
                           SUMMARY_FALLBACK_LENGTH, THOUGHT_TYPES, Classification, Extraction)
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import BedrockLLMConfig, PipelineConfig, config
from ..utils.json_utils import extract_json
from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import parse_datetime

logger = get_logger(__name__)

UNAVAILABLE_CONFIDENCE = 0.5

RELEVANCE_PROMPT = """
You are a filter for a personal voice-notes app. Decide whether a speech transcript contains a thought,
task, idea, reminder or piece of information worth saving.

Treat small talk, repetition, incoherent fragments and filler speech as not relevant.

Return a JSON object with this exact format:
```json
{"relevant": true, "confidence": 0.9}
```

confidence is between 0.0 and 1.0 and says how sure you are that the transcript is worth saving."""

EXTRACTION_PROMPT = """
You are an expert at structuring spoken notes. Extract structured data from the transcript.

Today's date: {today}
Language of transcript: {language}

Return a JSON object with this exact format:
```json
{{
  "type": "task|idea|note|reminder|journal",
  "priority": 3,
  "categories": ["work"],
  "entities": {{"people": [], "places": [], "projects": []}},
  "deadline": "ISO 8601 datetime or null",
  "sentiment": 0.0,
  "action_items": ["concrete step"],
  "summary": "1-2 sentence summary"
}}
```

Rules:
- type: "task" for actionable items, "idea" for creative thoughts, "reminder" for time-sensitive reminders,
  "journal" for personal reflections, "note" for everything else
- priority: 1 (lowest) to 5 (most urgent or important)
- categories: short labels such as "work", "health", "project-x"
- entities: people, places and projects or topics that are mentioned
- deadline: resolve relative dates ("tomorrow", "next week", "Friday") against today's date; null if none
- sentiment: -1.0 (very negative) to 1.0 (very positive), 0 is neutral
- action_items: concrete next steps, empty if none
- summary: written in the transcript's language"""


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def parse_relevance(response: str) -> Classification:
    """Validate the relevance response; unusable output counts as relevant."""
    data = extract_json(response)
    if not isinstance(data, dict):
        logger.warning('Relevance response was not a JSON object, assuming relevant')
        return Classification(relevant=True, confidence=UNAVAILABLE_CONFIDENCE)

    confidence = _number(data.get('confidence'))
    if confidence is None:
        confidence = UNAVAILABLE_CONFIDENCE
    return Classification(relevant=bool(data.get('relevant', True)), confidence=_clamp(confidence, 0.0, 1.0))


def parse_extraction(response: str, transcript: str) -> Extraction:
    """Validate an extraction response into a fully typed Extraction.

    Out-of-range numbers are clamped, unknown types fall back to 'note' and
    malformed collections become empty. Output that is not a JSON object
    yields the safe defaults.
    """
    data = extract_json(response)
    if not isinstance(data, dict):
        logger.warning('Extraction response was not a JSON object, using defaults')
        return Extraction.defaults(transcript)

    thought_type = data.get('type')
    if thought_type not in THOUGHT_TYPES:
        thought_type = DEFAULT_TYPE

    priority = _number(data.get('priority'))
    priority = DEFAULT_PRIORITY if priority is None else int(round(_clamp(priority, MIN_PRIORITY, MAX_PRIORITY)))

    sentiment = _number(data.get('sentiment'))
    sentiment = 0.0 if sentiment is None else _clamp(sentiment, -1.0, 1.0)

    raw_entities = data.get('entities') if isinstance(data.get('entities'), dict) else {}
    entities: Dict[str, List[str]] = {kind: _string_list(raw_entities.get(kind)) for kind in ENTITY_KINDS}

    summary = data.get('summary')
    summary = str(summary).strip() if summary else ''

    return Extraction(type=thought_type,
                      priority=priority,
                      categories=_string_list(data.get('categories')),
                      entities=entities,
                      deadline=parse_datetime(data.get('deadline')),
                      sentiment=sentiment,
                      action_items=_string_list(data.get('action_items')),
                      summary=summary or transcript[:SUMMARY_FALLBACK_LENGTH])


class Classifier:
    """Decide whether a transcript is worth keeping and extract its attributes."""

    def __init__(self,
                 llm: Optional[BedrockLLM] = None,
                 llm_config: Optional[BedrockLLMConfig] = None,
                 pipeline_config: Optional[PipelineConfig] = None):
        """
        Args:
            llm: LLM client; built from config when omitted and the model is configured
            llm_config: Bedrock LLM settings (global config if None)
            pipeline_config: Thresholds (global config if None)
        """
        self.llm_config = llm_config or config.bedrock_llm
        self.pipeline_config = pipeline_config or config.pipeline
        if llm is None and self.llm_config.enabled:
            llm = BedrockLLM(self.llm_config)
        self.llm = llm

        logger.info(f'Initialized Classifier (llm available: {self.available})')

    @property
    def available(self) -> bool:
        return self.llm is not None

    def _ask(self, system_prompt: str, transcript: str, model_id: str, max_tokens: int) -> str:
        messages = [{
            'role': 'user',
            'content': [{
                'text': f'Transcript:\n"""\n{transcript}\n"""'
            }]
        }, {
            'role': 'assistant',
            'content': [{
                'text': '```json'
            }]
        }]
        response, _ = self.llm.generate_response(messages=messages,
                                                 system_prompt=system_prompt,
                                                 model_id=model_id,
                                                 max_tokens=max_tokens,
                                                 stop_sequences=['```'])
        return response

    def check_relevance(self, transcript: str) -> Classification:
        """
        Relevance filter.

        Raises:
            BedrockLLMError: If the service call fails
        """
        response = self._ask(RELEVANCE_PROMPT, transcript, self.llm_config.relevance_model_id, 256)
        return parse_relevance(response)

    def extract(self, transcript: str, language: str) -> Optional[Extraction]:
        """Structured extraction; None when the service could not be reached."""
        system_prompt = EXTRACTION_PROMPT.format(today=date.today().isoformat(), language=language)
        try:
            response = self._ask(system_prompt, transcript, self.llm_config.model_id, self.llm_config.max_tokens)
        except BedrockLLMError as e:
            logger.warning(f'Extraction unavailable, thought keeps defaults: {e}')
            return None

        return parse_extraction(response, transcript)

    def classify(self, transcript: str, language: str = 'cs') -> Classification:
        """
        Run the relevance filter and, for relevant transcripts, the extraction.

        Args:
            transcript: Raw transcript text
            language: Language hint passed to the extraction prompt

        Returns:
            Classification; extraction is None when the transcript was filtered
            out or the service is unavailable
        """
        if not self.available:
            return Classification(relevant=True, confidence=UNAVAILABLE_CONFIDENCE)

        try:
            result = self.check_relevance(transcript)
        except BedrockLLMError as e:
            logger.warning(f'Relevance check unavailable, keeping transcript without enrichment: {e}')
            return Classification(relevant=True, confidence=UNAVAILABLE_CONFIDENCE)

        passed = result.relevant and result.confidence >= self.pipeline_config.relevance_threshold
        if not passed:
            logger.debug(f'Transcript below relevance threshold (relevant={result.relevant}, '
                         f'confidence={result.confidence:.2f})')
            return Classification(relevant=False, confidence=result.confidence)

        extraction = self.extract(transcript, language)
        return Classification(relevant=True, confidence=result.confidence, extraction=extraction)
