"""Tests for environment-driven configuration."""

from thoughtgraph.utils.config import load_config


def test_defaults(monkeypatch) -> None:
    for name in ('PIPELINE_RELEVANCE_THRESHOLD', 'PIPELINE_CONNECTION_THRESHOLD', 'PIPELINE_CONNECTION_TOP_K',
                 'SEARCH_RRF_K', 'OPENSEARCH_SERVICE', 'OPENSEARCH_TEXT_ANALYZER', 'BEDROCK_LLM_RETRY_ATTEMPTS'):
        monkeypatch.delenv(name, raising=False)

    app_config = load_config()

    assert app_config.pipeline.relevance_threshold == 0.70
    assert app_config.pipeline.connection_threshold == 0.82
    assert app_config.pipeline.connection_top_k == 5
    assert app_config.search.rrf_k == 60
    assert app_config.opensearch.service == 'es'
    assert app_config.opensearch.text_analyzer == 'standard'
    assert app_config.bedrock_llm.retry_attempts == 1


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv('PIPELINE_CONNECTION_THRESHOLD', '0.9')
    monkeypatch.setenv('OPENSEARCH_INDEX', 'dev_thoughts')
    monkeypatch.setenv('BEDROCK_LLM_MODEL_ID', '')

    app_config = load_config()

    assert app_config.pipeline.connection_threshold == 0.9
    assert app_config.opensearch.index_name == 'dev_thoughts'
    assert app_config.bedrock_llm.enabled is False
