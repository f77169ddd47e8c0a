"""JSON API endpoints for creator polls, vote quotes, funding plans and convergence watches."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from pulse.dashboard.stats import summarize
from pulse.distribution.classifier import classify, pending_reason
from pulse.exceptions import (
    ConvergenceTimeout,
    IndexerUnavailable,
    LedgerUnavailable,
    PulseError,
    TokenNotSupportedOnChain,
)
from pulse.models import FundingPlan, FundingPurpose, PendingConvergence, PollRecord
from pulse.tokens.amounts import format_amount
from pulse.voting.quadratic import average_cost_per_vote

log = structlog.get_logger(__name__)

router = APIRouter()


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _error_response(exc: PulseError) -> JSONResponse:
    status = 503 if isinstance(exc, (LedgerUnavailable, IndexerUnavailable)) else 400
    return JSONResponse(content=exc.to_dict(), status_code=status)


def _chain_id(request: Request, chain_id: int | None) -> int:
    return chain_id if chain_id is not None else request.app.state.settings.default_chain_id


def _body_chain_id(body: dict[str, Any]) -> int | None:
    raw = body.get("chain_id")
    return None if raw is None else int(raw)


def _poll_to_dict(record: PollRecord) -> dict[str, Any]:
    token = record.funding_token
    return {
        "poll_id": record.poll_id,
        "title": record.title,
        "question": record.question,
        "options": list(record.options),
        "votes": list(record.votes),
        "total_votes": record.total_votes,
        "end_time": record.end_time,
        "is_active": record.is_active,
        "creator": record.creator,
        "status": record.status.value,
        "distribution_mode": record.distribution_mode.value,
        "funding_type": record.funding_type.value,
        "voting_type": record.voting_type.value,
        "funding_token": token.symbol,
        "total_funding": str(record.total_funding),
        "total_funding_display": format_amount(record.total_funding, token.decimal_places),
        "total_votes_bought": record.total_votes_bought,
        "created_at": record.created_at,
        "voter_count": record.voter_count,
        "pending_reason": pending_reason(record).value,
    }


def _plan_to_dict(plan: FundingPlan) -> dict[str, Any]:
    return {
        "kind": plan.kind.value,
        "steps": [
            {
                "action": step.action.value,
                "token": step.token.symbol,
                "token_address": step.token_address,
                "spender": step.spender,
                "amount": str(step.amount),
                "amount_display": format_amount(step.amount, step.token.decimal_places),
            }
            for step in plan.steps
        ],
    }


def _watch_to_dict(entry: PendingConvergence) -> dict[str, Any]:
    return {
        "poll_id": entry.poll_id,
        "creator": entry.creator,
        "chain_id": entry.chain_id,
        "attempts_made": entry.attempts_made,
        "max_attempts": entry.max_attempts,
        "interval_seconds": entry.interval_seconds,
        "started_at": entry.started_at,
    }


@router.get("/creators/{creator}/polls")
async def get_creator_polls(
    request: Request, creator: str, chain_id: int | None = None
) -> JSONResponse:
    """Reconciled poll list with coverage, pending distributions and stats."""
    reconciler = request.app.state.reconciler
    chain = _chain_id(request, chain_id)
    try:
        result = await reconciler.reconcile(creator, chain)
    except PulseError as exc:
        return _error_response(exc)

    summary = classify(result.records)
    stats = summarize(result.records)
    return JSONResponse(
        content=_decimal_to_str({
            "chain_id": chain,
            "creator": creator.lower(),
            "polls": [_poll_to_dict(r) for r in result.records],
            "coverage": {
                "indexer_count": result.coverage.indexer_count,
                "ledger_only_count": result.coverage.ledger_only_count,
            },
            "is_indexer_degraded": result.is_indexer_degraded,
            "pending": {
                "count": summary.pending_count,
                "poll_ids": list(summary.pending_ids),
            },
            "stats": {
                "total_polls": stats.total_polls,
                "active_polls": stats.active_polls,
                "ended_polls": stats.ended_polls,
                "total_responses": stats.total_responses,
                "pending_distributions": stats.pending_distributions,
                "total_funded": stats.total_funded,
            },
        })
    )


@router.get("/votes/quote")
async def get_vote_quote(
    request: Request,
    owned: int,
    requested: int,
    token: str = "PULSE",
    poll_id: int = 0,
    option_index: int = 0,
) -> JSONResponse:
    """Exact price of buying `requested` votes on top of `owned`."""
    engine = request.app.state.cost_engine
    registry = request.app.state.registry
    descriptor = registry.get(token)
    if descriptor is None:
        return _error_response(TokenNotSupportedOnChain(f"unknown token {token}", token=token))

    try:
        quote = engine.quote_vote_purchase(poll_id, option_index, owned, requested, descriptor)
        breakdown = engine.quote_incremental_costs(owned, requested)
    except PulseError as exc:
        return _error_response(exc)

    unit = 10**descriptor.decimal_places
    return JSONResponse(
        content={
            "poll_id": quote.poll_id,
            "option_index": quote.option_index,
            "votes_already_owned": quote.votes_already_owned,
            "votes_requested": quote.votes_requested,
            "token": descriptor.symbol,
            "total_cost": str(quote.total_cost),
            "total_cost_display": format_amount(quote.total_cost, descriptor.decimal_places),
            "average_cost_per_vote": format_amount(
                average_cost_per_vote(quote.total_cost, quote.votes_requested),
                descriptor.decimal_places,
            ),
            "incremental_costs": [
                format_amount(cost * unit, descriptor.decimal_places) for cost in breakdown
            ],
        }
    )


@router.post("/funding/plan")
async def post_funding_plan(request: Request) -> JSONResponse:
    """Preflight a funding flow: read balance and allowance, return intent and steps.

    Expects JSON body with: poll_id, token, amount, owner, and optional
    chain_id and purpose ("fund_poll" or "buy_votes").
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)

    for field in ("poll_id", "token", "amount", "owner"):
        if field not in body:
            return JSONResponse(
                content={"error": f"Missing required field: {field}"}, status_code=400
            )

    try:
        purpose = FundingPurpose(body.get("purpose", FundingPurpose.FUND_POLL.value))
        poll_id = int(body["poll_id"])
        chain = _chain_id(request, _body_chain_id(body))
    except (TypeError, ValueError) as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)

    settings = request.app.state.settings
    spender = settings.ledger.polls_contracts.get(chain)
    if not spender:
        return _error_response(
            LedgerUnavailable("polls contract not deployed on chain", chain_id=chain)
        )

    preflight = request.app.state.preflight
    try:
        intent, plan = await preflight.prepare(
            poll_id=poll_id,
            symbol=str(body["token"]),
            amount=str(body["amount"]),
            chain_id=chain,
            owner=str(body["owner"]),
            spender=spender,
            purpose=purpose,
        )
    except PulseError as exc:
        log.info("funding_plan_rejected", error=exc.kind, poll_id=poll_id)
        return _error_response(exc)

    return JSONResponse(
        content={
            "intent": {
                "poll_id": intent.poll_id,
                "token": intent.token.symbol,
                "amount": intent.amount,
                "requested_amount_smallest_unit": str(intent.requested_amount_smallest_unit),
                "requires_authorization": intent.requires_authorization,
                "current_allowance": (
                    str(intent.current_allowance) if intent.current_allowance is not None else None
                ),
                "purpose": intent.purpose.value,
            },
            "plan": _plan_to_dict(plan),
        }
    )


@router.post("/polls/{poll_id}/convergence")
async def start_convergence(request: Request, poll_id: int) -> JSONResponse:
    """Watch the indexer until poll_id appears after a confirmed write.

    Expects JSON body with: creator, and optional chain_id.
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)
    if not isinstance(body, dict) or "creator" not in body:
        return JSONResponse(
            content={"error": "Missing required field: creator"}, status_code=400
        )

    try:
        chain = _chain_id(request, _body_chain_id(body))
    except (TypeError, ValueError) as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)
    watcher = request.app.state.convergence_watcher

    def _on_converged(converged_id: int) -> None:
        log.info("api_convergence_confirmed", poll_id=converged_id)

    def _on_timeout(exc: ConvergenceTimeout) -> None:
        log.warning("api_convergence_timeout", **exc.context)

    watcher.await_convergence(poll_id, str(body["creator"]), chain, _on_converged, _on_timeout)
    entry = watcher.get(poll_id)
    return JSONResponse(content=_watch_to_dict(entry), status_code=202)


@router.get("/convergence")
async def list_convergence(request: Request) -> JSONResponse:
    """Pending convergence watches."""
    watcher = request.app.state.convergence_watcher
    return JSONResponse(content=[_watch_to_dict(e) for e in watcher.pending()])


@router.delete("/polls/{poll_id}/convergence")
async def cancel_convergence(request: Request, poll_id: int) -> JSONResponse:
    watcher = request.app.state.convergence_watcher
    if not watcher.cancel(poll_id):
        return JSONResponse(
            content={"error": f"No pending convergence for poll {poll_id}"}, status_code=404
        )
    return JSONResponse(content={"poll_id": poll_id, "cancelled": True})
