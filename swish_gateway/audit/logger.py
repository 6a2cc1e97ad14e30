"""
Audit trail for payment lifecycles.

Every stage of a payment gets an audit line with:
  - Payment ID (the provider's resource id, once known)
  - Action (what happened)
  - Details (context, error messages, provider status)

Payment records are not persisted, so the log stream is the trail. Secrets
such as the bundle passphrase must never be passed in details.
"""

import json
import logging
from typing import Any, Optional

logger = logging.getLogger("swish_gateway.audit")


def log_event(
    action: str,
    payment_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Emit an audit log line.

    Args:
        action: What happened (e.g. "submission_started", "payment_created", "poll_failed").
        payment_id: The provider's payment id, when known.
        details: Arbitrary context (serialized to JSON, truncated to 200 chars).
        level: Logging level for the line.
    """
    logger.log(
        level,
        "AUDIT | payment=%s action=%s | %s",
        payment_id or "-",
        action,
        json.dumps(details, default=str)[:200] if details else "",
    )
