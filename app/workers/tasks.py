"""RQ task definitions."""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Mapping

from redis import Redis

from connectors.errors import RepositoryDocumentError
from connectors.urls import DocumentType, UrlConstructor
from manager.context import ManagerContext, get_context
from manager.schedule import Schedule
from models import Run
from models.session import get_session
from workers.scheduler import calculate_next_due, lock_key


logger = logging.getLogger(__name__)


def _address_documents(
    urls: UrlConstructor, documents: list[Mapping[str, Any]]
) -> tuple[list[tuple[str, str | None]], list[str]]:
    addressed: list[tuple[str, str | None]] = []
    errors: list[str] = []
    for document in documents:
        try:
            record_url = urls.get_record_url(document, DocumentType.RECORD)
            inherit_from = urls.get_inherit_from_url(document)
        except RepositoryDocumentError as exc:
            logger.warning("Skipping document from %s: %s", urls.data_source, exc)
            errors.append(str(exc))
            continue
        addressed.append((record_url, inherit_from))
    return addressed, errors


def run_traversal(connector_name: str, context: ManagerContext | None = None) -> int:
    """Run one traversal batch for ``connector_name`` and persist its checkpoint.

    Returns the number of documents that could be addressed.
    """
    ctx = context or get_context()
    instantiator = ctx.instantiator
    redis = Redis.from_url(ctx.settings.redis_url)

    try:
        record = ctx.schedule_store.get_record(connector_name)
        if record is None or not instantiator.has_connector(connector_name):
            logger.warning("Connector %s is no longer scheduled", connector_name)
            return 0
        schedule = Schedule.parse(record.schedule)
        return _traverse(ctx, connector_name, schedule)
    finally:
        redis.delete(lock_key(connector_name))


def _traverse(ctx: ManagerContext, connector_name: str, schedule: Schedule) -> int:
    instantiator = ctx.instantiator
    with get_session(ctx.session_factory) as session:
        run = Run(connector=connector_name, started_at=datetime.now(timezone.utc), status="running")
        session.add(run)
        session.flush()
        run_id = run.id

    status = "success"
    error_log: str | None = None
    item_total = 0
    superseded = False
    try:
        traverser = instantiator.get_traverser(connector_name)
        if traverser is None:
            raise RuntimeError(f"Connector {connector_name} does not support traversal")

        snapshot = instantiator.get_traversal_snapshot(connector_name)
        batch = traverser.resume_traversal(snapshot.checkpoint, schedule.load)
        addressed, errors = _address_documents(ctx.url_constructor(connector_name), batch.documents)
        item_total = len(addressed)
        if errors:
            error_log = "\n".join(errors)

        # A restart or removal while we were traversing wins over our checkpoint.
        if not instantiator.has_connector(connector_name):
            logger.info("Connector %s was removed during traversal", connector_name)
            superseded = True
        elif not instantiator.store_traversal_checkpoint(
            connector_name, batch.checkpoint, snapshot.generation
        ):
            logger.info("Traversal state for %s was reset during traversal", connector_name)
            superseded = True
    except Exception as exc:
        logger.exception("Traversal for connector %s failed", connector_name)
        status = "error"
        error_log = f"{exc}\n{traceback.format_exc()}"
    finished_at = datetime.now(timezone.utc)

    with get_session(ctx.session_factory) as session:
        run = session.get(Run, run_id)
        run.status = status
        run.item_count = item_total
        run.error_log = error_log
        run.finished_at = finished_at

    if not superseded:
        # Failed batches wait out the retry delay like empty ones.
        next_due = calculate_next_due(schedule, item_total if status == "success" else 0, finished_at)
        ctx.schedule_store.mark_run(connector_name, finished_at, next_due)
    return item_total
