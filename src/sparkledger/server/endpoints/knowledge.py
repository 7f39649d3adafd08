# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""REST endpoints for knowledge items.

Routes:
    POST   /api/v1/knowledge/vote             — cast_vote_endpoint
    GET    /api/v1/knowledge                  — list_items_endpoint
    POST   /api/v1/knowledge/reconcile        — reconcile_endpoint
    GET    /api/v1/topics/:topic_id/events    — topic_events_endpoint
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from ...core.exceptions import SparkException
from ...core.logging import sanitize
from ...ledger.events import Outcome
from ..endpoint_utils import _parse_int, _require_str, get_engine
from ..errors import (
    exception_response,
    internal_error,
    invalid_json_error,
    missing_field_error,
    validation_error,
)
from ..metrics import get_metrics_collector

logger = logging.getLogger(__name__)


async def cast_vote_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/knowledge/vote — Vote to approve or reject a knowledge item.

    Body: ``{"itemId": str, "privateKey": str, "vote": "approve" | "reject"}``
    """
    try:
        body = await request.json()
    except Exception:
        return invalid_json_error()
    if not isinstance(body, dict):
        return invalid_json_error()

    logger.debug(f"Vote request: {sanitize(body)}")

    item_id = _require_str(body, "itemId")
    if not item_id:
        return missing_field_error("itemId")
    credential = _require_str(body, "privateKey") or _require_str(body, "hederaPrivateKey")
    if not credential:
        return missing_field_error("privateKey")
    vote = _require_str(body, "vote")
    if not vote:
        return missing_field_error("vote")
    if vote not in ("approve", "reject"):
        return validation_error("vote must be 'approve' or 'reject'")

    try:
        engine = get_engine(request)
        result = await engine.cast_vote(item_id, credential, vote)
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception("Error casting vote")
        return internal_error()

    collector = get_metrics_collector()
    collector.record_vote(result.status.value, finalized=result.status.is_terminal)
    if result.sync_failed:
        collector.record_sync_failure()

    return JSONResponse(result.to_dict())


async def list_items_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/knowledge — List knowledge items grouped by status.

    Optional ``?status=pending|approved|rejected`` narrows the listing.
    """
    status = request.query_params.get("status")
    if status is not None and status not in {o.value for o in Outcome}:
        return validation_error("status must be one of pending, approved, rejected")

    try:
        listing = await get_engine(request).list_items()
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception("Error listing knowledge items")
        return internal_error()

    if status is not None:
        return JSONResponse(
            {
                "success": True,
                "status": status,
                "items": listing[status],
                "total_count": len(listing[status]),
            }
        )
    return JSONResponse(listing)


async def reconcile_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/knowledge/reconcile — Re-emit missing deltas and re-sync authors."""
    try:
        report = await get_engine(request).reconcile()
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception("Error reconciling reputation")
        return internal_error()

    if report.warnings:
        logger.warning(f"Reconciliation finished with {len(report.warnings)} warnings")
    return JSONResponse(report.to_dict())


async def topic_events_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/topics/{topic_id}/events — Decoded events of one topic."""
    topic_id = request.path_params.get("topic_id")
    if not topic_id:
        return missing_field_error("topic_id")

    try:
        engine = get_engine(request)
        limit = _parse_int(request.query_params.get("limit"), default=engine.config.page_limit)
        events = await engine.topic_events(topic_id, limit)
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception(f"Error reading topic {topic_id}")
        return internal_error()

    return JSONResponse(
        {
            "success": True,
            "topicId": topic_id,
            "events": [e.to_dict() for e in events],
            "total_count": len(events),
        }
    )
