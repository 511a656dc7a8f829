import logging

import pytest
from pydantic import ValidationError

from rexai import config


def test_settings_defaults_and_cache():
    settings = config.get_settings()
    second = config.get_settings()

    assert settings is second
    assert settings.app_name == "RexAI Backend"
    assert settings.api_prefix == "/api"
    assert settings.embedding_dimension == 384
    assert settings.embedding_batch_size == 8
    assert (settings.chunk_max_tokens, settings.chunk_overlap_tokens, settings.chunk_min_tokens) == (256, 50, 20)
    assert settings.openai_summary_model == "gpt-3.5-turbo"
    assert settings.empty_document_placeholder == "[EMPTY DOCUMENT]"


def test_settings_reject_inconsistent_chunking():
    with pytest.raises(ValidationError):
        config.Settings(database_url="postgresql+asyncpg://x/y", chunk_overlap_tokens=300)
    with pytest.raises(ValidationError):
        config.Settings(database_url="postgresql+asyncpg://x/y", chunk_min_tokens=500)


def test_main_app_metadata_and_routes():
    from rexai.main import app

    paths = {route.path for route in app.routes}

    assert app.title == config.settings.app_name
    assert app.version == config.settings.app_version
    assert app.docs_url == "/docs"
    assert {"/api/ingest", "/api/search", "/api/validate", "/health"} <= paths


def test_log_records_carry_request_and_document_ids():
    from rexai.logging import ContextFilter, document_id_var, request_id_var

    record = logging.LogRecord("rexai.test", logging.INFO, __file__, 1, "hello", None, None)
    request_token = request_id_var.set("req-123")
    document_token = document_id_var.set(42)
    try:
        ContextFilter().filter(record)
    finally:
        request_id_var.reset(request_token)
        document_id_var.reset(document_token)

    assert record.request_id == "req-123"
    assert record.document_id == 42

    bare = logging.LogRecord("rexai.test", logging.INFO, __file__, 1, "hello", None, None)
    ContextFilter().filter(bare)
    assert (bare.request_id, bare.document_id) == ("-", "-")
