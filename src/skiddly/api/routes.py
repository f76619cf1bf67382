"""Rotas HTTP: webhooks da loja e do provedor de voz, tick interno e consulta."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from skiddly.adapters.shopify.normalizer import (
    CHECKOUT_TOPICS,
    ORDER_TOPIC,
    normalize_checkout,
    normalize_order,
)
from skiddly.adapters.shopify.signature import verify_shopify_signature
from skiddly.adapters.vapi.normalizer import message_type, normalize_end_of_call_report
from skiddly.adapters.vapi.signature import verify_vapi_signature
from skiddly.api.dependencies import (
    ensure_webhook_secret,
    get_orchestrator,
    get_settings,
    require_internal_token,
)
from skiddly.application.orchestrator import CallOrchestrator
from skiddly.config.settings import Settings
from skiddly.domain.errors import UnreachableOutcomeError, ValidationError
from skiddly.observability.logging import get_logger
from skiddly.observability.middleware import get_correlation_id
from skiddly.observability.timing import timed

logger = get_logger(__name__)

router = APIRouter()


def _load_json(raw_body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body or b"{}")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_json") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_payload")
    return payload


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples para Cloud Run."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@router.post("/webhooks/shopify")
async def shopify_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Recebe checkouts/create, checkouts/update e orders/create."""
    ensure_webhook_secret(settings.shopify_api_secret, settings)

    raw_body = await request.body()
    signature_result = verify_shopify_signature(
        raw_body, request.headers, settings.shopify_api_secret
    )
    if not signature_result.valid:
        logger.warning("shopify_signature_invalid", extra={"error": signature_result.error})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_signature")

    payload = _load_json(raw_body)
    topic = request.headers.get("x-shopify-topic", "")
    shop_domain = request.headers.get("x-shopify-shop-domain")
    correlation_id = get_correlation_id()
    now = datetime.now(tz=UTC)

    try:
        if topic in CHECKOUT_TOPICS:
            event = normalize_checkout(payload, shop_domain, received_at=now)
            cart = orchestrator.handle_checkout_event(event, CHECKOUT_TOPICS[topic])
            result = {"cart_status": cart.status.value}
        elif topic == ORDER_TOPIC:
            order = normalize_order(payload, shop_domain, received_at=now)
            cart = orchestrator.handle_order_event(order, now) if order else None
            result = {"cart_status": cart.status.value if cart else None}
        else:
            logger.info("shopify_topic_ignored", extra={"topic": topic})
            return {"ok": True, "status": "ignored", "topic": topic, "correlation_id": correlation_id}
    except ValidationError as exc:
        logger.warning("shopify_payload_invalid", extra={"topic": topic, "error": str(exc)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_payload") from exc
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "shopify_webhook_failed",
            extra={"topic": topic, "error": type(exc).__name__, "correlation_id": correlation_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="processing_failed",
        ) from exc

    return {
        "ok": True,
        "status": "processed",
        "topic": topic,
        "correlation_id": correlation_id,
        "signature_validated": signature_result.valid and not signature_result.skipped,
        **result,
    }


@router.post("/webhooks/vapi")
async def vapi_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Recebe end-of-call-report; demais mensagens são reconhecidas e ignoradas.

    Falhas de processamento respondem 503 para o VAPI reentregar; a
    reentrega é idempotente e conclui a atualização do caso.
    """
    ensure_webhook_secret(settings.vapi_webhook_secret, settings)

    raw_body = await request.body()
    signature_result = verify_vapi_signature(
        raw_body, request.headers, settings.vapi_webhook_secret
    )
    if not signature_result.valid:
        logger.warning("vapi_signature_invalid", extra={"error": signature_result.error})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_signature")

    payload = _load_json(raw_body)
    correlation_id = get_correlation_id()

    try:
        result = normalize_end_of_call_report(payload, received_at=datetime.now(tz=UTC))
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid_payload") from exc

    if result is None:
        return {
            "ok": True,
            "status": "ignored",
            "message_type": message_type(payload),
            "correlation_id": correlation_id,
        }

    try:
        with timed("call_result"):
            call = await orchestrator.handle_call_result(result)
    except UnreachableOutcomeError as exc:
        logger.critical(
            "unreachable_outcome",
            extra={"provider_call_id": result.call_id, "error": str(exc)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="unreachable_outcome",
        ) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "vapi_webhook_failed",
            extra={
                "provider_call_id": result.call_id,
                "error": type(exc).__name__,
                "correlation_id": correlation_id,
            },
        )
        # 5xx faz o provedor reentregar; a reentrega conclui a escrita do caso
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="call_result_failed",
        ) from exc

    return {
        "ok": True,
        "status": "processed" if call is not None else "unknown_call",
        "call_id": call.call_id if call else None,
        "outcome": call.outcome.value if call and call.outcome else None,
        "final_action": call.final_action.value if call and call.final_action else None,
        "correlation_id": correlation_id,
    }


@router.post("/internal/scheduler/tick")
async def scheduler_tick(
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Disparo do cron: varre carrinhos abandonados e dispara tentativas vencidas."""
    require_internal_token(request, settings)

    now = datetime.now(tz=UTC)
    with timed("abandoned_cart_scan"):
        opened = orchestrator.scan_abandoned_carts(now)
    with timed("due_dispatch"):
        dispatched = await orchestrator.dispatch_due(now)

    return {
        "ok": True,
        "cases_opened": len(opened),
        "calls_dispatched": len(dispatched),
        "correlation_id": get_correlation_id(),
    }


@router.get("/cases/{case_id}")
def get_case(
    case_id: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Consulta somente leitura do caso e das ligações (sem transcrições)."""
    require_internal_token(request, settings)

    view = orchestrator.describe_case(case_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="case_not_found")
    return dict(view)


@router.post("/cases/{case_id}/do-not-contact")
def cancel_case(
    case_id: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Cancela o caso (opt-out recebido fora da ligação)."""
    require_internal_token(request, settings)

    case = orchestrator.mark_do_not_contact(case_id, "manual_opt_out", datetime.now(tz=UTC))
    if case is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="case_not_found")
    return {"ok": True, "case_id": case.case_id, "state": case.state.value}
