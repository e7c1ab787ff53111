"""
Configuration management for AWS services and application settings.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class BedrockLLMConfig:
    """Configuration for Amazon Bedrock LLM service."""
    region: str
    model_id: str  # Extraction model, empty string disables classification
    relevance_model_id: str  # Cheaper model for the relevance filter
    max_tokens: int
    temperature: float
    timeout: float
    retry_attempts: int
    retry_delay: float

    @property
    def enabled(self) -> bool:
        return bool(self.model_id.strip())


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int
    timeout: float
    retry_attempts: int
    retry_delay: float

    @property
    def enabled(self) -> bool:
        return bool(self.model_id.strip())


@dataclass
class OpenSearchConfig:
    """Configuration for OpenSearch."""
    endpoint: str
    port: int
    region: str
    service: str
    index_name: str
    dimension: int
    text_analyzer: str
    index_sync_wait: float
    timeout: float


@dataclass
class PipelineConfig:
    """Configuration for the ingestion pipeline."""
    relevance_threshold: float
    connection_threshold: float
    connection_top_k: int
    max_workers: int
    default_language: str


@dataclass
class SearchConfig:
    """Configuration for hybrid search."""
    rrf_k: int
    default_limit: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    bedrock_embed: BedrockEmbedConfig
    opensearch: OpenSearchConfig
    pipeline: PipelineConfig
    search: SearchConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    llm_model_id = os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-5-sonnet-20240620-v1:0')
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=llm_model_id,
                                          relevance_model_id=os.getenv('BEDROCK_LLM_RELEVANCE_MODEL_ID',
                                                                       'anthropic.claude-3-haiku-20240307-v1:0') or llm_model_id,
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '1024')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.0')),
                                          timeout=float(os.getenv('BEDROCK_LLM_TIMEOUT', '60')),
                                          retry_attempts=int(os.getenv('BEDROCK_LLM_RETRY_ATTEMPTS', '1')),
                                          retry_delay=float(os.getenv('BEDROCK_LLM_RETRY_DELAY', '1.0')))

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v2:0'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1024')),
                                              timeout=float(os.getenv('BEDROCK_EMBED_TIMEOUT', '30')),
                                              retry_attempts=int(os.getenv('BEDROCK_EMBED_RETRY_ATTEMPTS', '1')),
                                              retry_delay=float(os.getenv('BEDROCK_EMBED_RETRY_DELAY', '1.0')))

    # Thought store configuration
    opensearch_config = OpenSearchConfig(endpoint=os.getenv('OPENSEARCH_ENDPOINT', 'localhost'),
                                         port=int(os.getenv('OPENSEARCH_PORT', '443')),
                                         region=os.getenv('OPENSEARCH_AWS_REGION', 'us-east-1'),
                                         service=os.getenv('OPENSEARCH_SERVICE', 'es'),
                                         index_name=os.getenv('OPENSEARCH_INDEX', 'thoughts'),
                                         dimension=int(os.getenv('OPENSEARCH_DIMENSION', '1024')),
                                         text_analyzer=os.getenv('OPENSEARCH_TEXT_ANALYZER', 'standard'),
                                         index_sync_wait=float(os.getenv('OPENSEARCH_INDEX_SYNC_WAIT', '0')),
                                         timeout=float(os.getenv('OPENSEARCH_TIMEOUT', '30')))

    # Pipeline configuration
    pipeline_config = PipelineConfig(relevance_threshold=float(os.getenv('PIPELINE_RELEVANCE_THRESHOLD', '0.70')),
                                     connection_threshold=float(os.getenv('PIPELINE_CONNECTION_THRESHOLD', '0.82')),
                                     connection_top_k=int(os.getenv('PIPELINE_CONNECTION_TOP_K', '5')),
                                     max_workers=int(os.getenv('PIPELINE_MAX_WORKERS', '4')),
                                     default_language=os.getenv('PIPELINE_DEFAULT_LANGUAGE', 'cs'))

    # Search configuration
    search_config = SearchConfig(rrf_k=int(os.getenv('SEARCH_RRF_K', '60')),
                                 default_limit=int(os.getenv('SEARCH_DEFAULT_LIMIT', '20')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'sse'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     bedrock_embed=bedrock_embed_config,
                     opensearch=opensearch_config,
                     pipeline=pipeline_config,
                     search=search_config,
                     mcp=mcp_config)


# Global configuration instance
config = load_config()
