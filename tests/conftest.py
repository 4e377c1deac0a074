"""Shared test fixtures for the GST ledger test suite."""

import asyncio

import pytest

from gst_ledger.config.settings import Settings
from gst_ledger.domain.models.gst import Invoice, LineItem
from gst_ledger.infrastructure.store.memory import InMemoryDocumentStore


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


@pytest.fixture
def settings() -> Settings:
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def make_invoice():
    """Factory for a typical one-line invoice: 2 x 500 @ 18% (tax 180, total 1180)."""

    def _make(**overrides) -> Invoice:
        defaults = {
            "id": "INV-001",
            "invoice_number": "INV-001",
            "customer_name": "XYZ Enterprises",
            "customer_tax_id": "27AADCB2230M1ZP",
            "status": "sent",
            "items": [LineItem(quantity=2, rate=500, tax_rate_percent=18, description="Widget")],
            "subtotal": 1000,
            "tax_amount": 180,
            "total_amount": 1180,
            "created_at": "2024-06-15T10:30:00+00:00",
        }
        defaults.update(overrides)
        return Invoice(**defaults)

    return _make
