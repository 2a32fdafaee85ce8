"""
Pytest fixtures for the page editor core.

This module provides:
1. A DocumentModel with fixed canvas settings (independent of the environment)
2. Editor sessions over empty and pre-populated pages
3. A loguru sink so tests can assert on log output
"""

from typing import List

import pytest
from loguru import logger

from page_editor.models import PageSchema
from page_editor.services.document_model import DocumentModel
from page_editor.services.editor_session import EditorSession
from tests.helpers.factories import make_node, make_page


@pytest.fixture
def document() -> DocumentModel:
    return DocumentModel(grid_size=10, snap_to_grid=False, min_size=50, duplicate_offset=20)


@pytest.fixture
def empty_page() -> PageSchema:
    return PageSchema.create_new(name="Home", author="tester")


@pytest.fixture
def three_nodes() -> PageSchema:
    return make_page(
        make_node("a", x=10, y=20, width=100, height=50),
        make_node("b", x=200, y=40, width=50, height=50),
        make_node("c", x=300, y=300),
    )


@pytest.fixture
def session(document: DocumentModel, empty_page: PageSchema) -> EditorSession:
    return EditorSession(empty_page, max_states=50, document=document)


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: List[str] = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(sink_id)
