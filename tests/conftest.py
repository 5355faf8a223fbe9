"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.llm.generator import GenerationResult
from src.mcp.types import SearchResponse, SendResponse


@pytest.fixture
def mail() -> MagicMock:
    """Mail service stub: empty mailbox, sends succeed with id 'sent_001'."""
    m = MagicMock()
    m.search_messages = AsyncMock(return_value=SearchResponse(messages=[]))
    m.send_message = AsyncMock(return_value=SendResponse(id="sent_001"))
    return m


@pytest.fixture
def generator() -> MagicMock:
    """Text generator stub returning a fixed digest."""
    g = MagicMock()
    g.generate = AsyncMock(
        return_value=GenerationResult(
            text="Weekly digest.",
            usage={"input_tokens": 120, "output_tokens": 8},
        )
    )
    return g
