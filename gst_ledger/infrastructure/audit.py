# gst_ledger/infrastructure/audit.py
"""
Simple audit logger for ledger and return mutations.

Logs which actor did what to which document, and when, as structured log
lines that any log aggregator can ingest.
"""

import logging
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("audit")

SYSTEM_ACTOR = "system"


def log_ledger_action(
    action: str,
    *,
    actor: str | None = None,
    collection: str = "",
    doc_id: str = "",
    details: dict[str, Any] | None = None,
) -> None:
    """Log a ledger/return mutation (create, upsert, delete, file, backfill...)."""
    logger.info(
        "LEDGER_ACTION action=%s actor=%s collection=%s doc_id=%s time=%s details=%s",
        action,
        actor or SYSTEM_ACTOR,
        collection,
        doc_id,
        datetime.now(timezone.utc).isoformat(),
        details or {},
    )
