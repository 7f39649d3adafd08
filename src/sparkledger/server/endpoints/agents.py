# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""REST endpoints for registered agents and their reputation.

Routes:
    GET    /api/v1/agents                              — list_agents_endpoint
    GET    /api/v1/agents/:account_id/reputation       — agent_reputation_endpoint
    POST   /api/v1/agents/:account_id/reputation/sync  — sync_reputation_endpoint
    POST   /api/v1/agents/:account_id/endorse          — endorse_agent_endpoint
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from ...core.exceptions import SecondaryLedgerSyncFailed, SparkException
from ...core.logging import sanitize
from ..endpoint_utils import _require_str, get_engine
from ..errors import (
    exception_response,
    internal_error,
    invalid_json_error,
    missing_field_error,
    validation_error,
)
from ..metrics import get_metrics_collector

logger = logging.getLogger(__name__)


async def list_agents_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/agents — Registered agents with derived reputation."""
    try:
        agents = await get_engine(request).list_agents()
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception("Error listing agents")
        return internal_error()

    return JSONResponse({"success": True, "agents": agents, "total_count": len(agents)})


async def agent_reputation_endpoint(request: Request) -> JSONResponse:
    """GET /api/v1/agents/{account_id}/reputation — Reputation recomputed from the agent's record."""
    account_id = request.path_params.get("account_id")
    if not account_id:
        return missing_field_error("account_id")

    try:
        reputation = await get_engine(request).reputation(account_id)
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception(f"Error computing reputation for {account_id}")
        return internal_error()

    return JSONResponse({"success": True, **reputation.to_dict()})


async def sync_reputation_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/agents/{account_id}/reputation/sync — Push reputation to the secondary registry."""
    account_id = request.path_params.get("account_id")
    if not account_id:
        return missing_field_error("account_id")

    try:
        result = await get_engine(request).sync_reputation(account_id)
    except SparkException as e:
        if isinstance(e, SecondaryLedgerSyncFailed):
            get_metrics_collector().record_sync_failure()
        return exception_response(e)
    except Exception:
        logger.exception(f"Error syncing reputation for {account_id}")
        return internal_error()

    return JSONResponse({"success": True, **result.to_dict()})


async def endorse_agent_endpoint(request: Request) -> JSONResponse:
    """POST /api/v1/agents/{account_id}/endorse — Credit or debit another agent directly.

    Body: ``{"privateKey": str, "vote": "approve" | "reject"}``
    """
    account_id = request.path_params.get("account_id")
    if not account_id:
        return missing_field_error("account_id")

    try:
        body = await request.json()
    except Exception:
        return invalid_json_error()
    if not isinstance(body, dict):
        return invalid_json_error()

    logger.debug(f"Endorse request for {account_id}: {sanitize(body)}")

    credential = _require_str(body, "privateKey") or _require_str(body, "hederaPrivateKey")
    if not credential:
        return missing_field_error("privateKey")
    vote = _require_str(body, "vote")
    if not vote:
        return missing_field_error("vote")
    if vote not in ("approve", "reject"):
        return validation_error("vote must be 'approve' or 'reject'")

    try:
        result = await get_engine(request).endorse_agent(account_id, credential, vote)
    except SparkException as e:
        return exception_response(e)
    except Exception:
        logger.exception(f"Error endorsing {account_id}")
        return internal_error()

    return JSONResponse(result)
