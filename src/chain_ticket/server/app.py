"""FastAPI application exposing the purchase handshake."""

from typing import Optional

from fastapi import APIRouter, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chain_ticket.x402.errors import ResourceNotFound

from .collaborators import PricingLookup
from .handshake import PAYMENT_RESPONSE_HEADER, PurchaseHandshakeServer


async def _buyer_from_body(request: Request) -> Optional[str]:
    try:
        body = await request.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("buyerAddress"), str):
        return body["buyerAddress"]
    return None


def create_router(
    handshake: PurchaseHandshakeServer, pricing: PricingLookup
) -> APIRouter:
    router = APIRouter()

    @router.post("/purchase/{resource_id}")
    async def purchase(
        resource_id: str,
        request: Request,
        x_buyer_address: Optional[str] = Header(default=None),
        x_payment: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        buyer_address = x_buyer_address or await _buyer_from_body(request)
        result = await handshake.handle(resource_id, buyer_address, x_payment)
        return JSONResponse(
            status_code=result.status_code,
            content=result.body,
            headers=result.headers,
        )

    @router.get("/price/{resource_id}")
    async def price(resource_id: str) -> JSONResponse:
        try:
            ticket_price = await pricing.price_of(resource_id)
        except ResourceNotFound as e:
            return JSONResponse(
                status_code=404, content={"error": e.code, "message": e.reason}
            )
        return JSONResponse(
            content={
                "resourceId": resource_id,
                "price": str(ticket_price.amount_decimal),
                "currency": ticket_price.currency,
            }
        )

    @router.get("/health")
    async def health() -> dict:
        return {"status": "ok", "service": "chain-ticket"}

    return router


def create_app(
    handshake: PurchaseHandshakeServer, pricing: PricingLookup
) -> FastAPI:
    app = FastAPI(title="Chain Ticket", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[PAYMENT_RESPONSE_HEADER],
    )
    app.include_router(create_router(handshake, pricing))
    return app
