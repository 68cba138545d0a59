"""Idempotency key store for create and update operations.

A client may send ``X-Idempotency-Key`` with a mutation. The first
successful (2xx) outcome is stored under ``(key, scope)`` together with a
fingerprint of the validated payload, where scope is ``"METHOD path"``.
Within the TTL:

- same key, same payload  -> the stored response is replayed
- same key, other payload -> 409 Conflict

Expired records are purged lazily whenever a key is looked up.
"""
import hashlib
import json
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError

logger = logging.getLogger("oneplan-core.idempotency")

IDEMPOTENCY_HEADER = "X-Idempotency-Key"
REPLAYED_HEADER = "Idempotent-Replayed"


def fingerprint(payload: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of a payload."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def purge_expired(db: Session, ttl: timedelta) -> int:
    """
    Delete records older than the TTL.

    Returns:
        Number of records removed
    """
    cutoff = models.utcnow() - ttl
    removed = (
        db.query(models.IdempotencyRecord)
        .filter(models.IdempotencyRecord.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.debug(f"Purged {removed} expired idempotency records")
    return removed


def find_replay(
    db: Session,
    key: str,
    scope: str,
    request_hash: str,
    ttl: timedelta,
) -> Optional[models.IdempotencyRecord]:
    """
    Look up a stored outcome for a key.

    Args:
        db: Database session
        key: Client-supplied idempotency key
        scope: "METHOD path" of the request
        request_hash: Fingerprint of the current payload
        ttl: Replay window

    Returns:
        Record to replay, or None if the key is unused

    Raises:
        ConflictError: If the key was used with a different payload
    """
    purge_expired(db, ttl)

    record = (
        db.query(models.IdempotencyRecord)
        .filter(
            models.IdempotencyRecord.key == key,
            models.IdempotencyRecord.scope == scope,
        )
        .first()
    )
    if record is None:
        return None

    if record.request_hash != request_hash:
        logger.warning(f"Idempotency key {key} reused with a different payload on {scope}")
        raise ConflictError(
            "Idempotency key has already been used with a different request payload",
            idempotencyKey=key,
        )

    logger.info(f"Replaying stored response for idempotency key {key} on {scope}")
    return record


def remember(
    db: Session,
    key: str,
    scope: str,
    request_hash: str,
    status_code: int,
    body: Any,
) -> None:
    """
    Store the outcome of a successful mutation.

    A concurrent request that stored the same key first wins; this one is
    left unrecorded.
    """
    record = models.IdempotencyRecord(
        key=key,
        scope=scope,
        request_hash=request_hash,
        status_code=status_code,
        response_body=json.dumps(body),
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Idempotency key {key} on {scope} was stored concurrently")
