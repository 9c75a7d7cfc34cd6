"""Demo FastAPI application with the idempotency gate.

Run with: python demo_app.py

Then try:
    curl -i -X POST localhost:8000/api/payments \\
        -H 'Idempotency-Key: abc-123' -H 'Content-Type: application/json' \\
        -d '{"amount": 1000}'

Repeating the command replays the first response with
``Idempotency-Replayed: true``; changing the amount with the same key
returns 422.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from idempotency_gate.adapters.asgi import ASGIIdempotencyMiddleware
from idempotency_gate.config import IdempotencyConfig
from idempotency_gate.core.cleanup import start_cleanup_task, stop_cleanup_task
from idempotency_gate.observability.logging import configure_logging
from idempotency_gate.storage.memory import MemoryStorageAdapter

configure_logging(level="INFO", json_output=False)

storage = MemoryStorageAdapter(ttl_seconds=3600, max_size=10_000)
config = IdempotencyConfig(
    methods=["POST", "PATCH"],
    max_body_size=64 * 1024,
    cache_key_prefix=lambda request: request.header("X-Tenant-Id") or "",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = await start_cleanup_task(storage, interval_seconds=60)
    yield
    await stop_cleanup_task(task)


app = FastAPI(
    title="Idempotency Gate Demo",
    description="Demo API showing idempotent request handling",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(ASGIIdempotencyMiddleware, storage=storage, config=config)


class PaymentRequest(BaseModel):
    amount: int
    currency: str = "USD"


class PaymentResponse(BaseModel):
    id: str
    status: str
    amount: int
    currency: str
    idempotency_key: str | None
    created_at: str


class RefundRequest(BaseModel):
    reason: str


@app.get("/api/status")
async def get_status():
    """Health check; GET is not covered by the gate."""
    return {"status": "ok", "stored_records": len(storage)}


@app.post("/api/payments", response_model=PaymentResponse, status_code=201)
async def create_payment(payment: PaymentRequest, request: Request):
    """Create a payment. Retries with the same key replay this response."""
    await asyncio.sleep(0.1)

    return PaymentResponse(
        id=f"pay_{int(time.time() * 1000)}",
        status="succeeded",
        amount=payment.amount,
        currency=payment.currency,
        idempotency_key=getattr(request.state, "idempotency_key", None),
        created_at=datetime.now(UTC).isoformat(),
    )


@app.patch("/api/payments/{payment_id}/refund")
async def refund_payment(payment_id: str, refund: RefundRequest):
    """Refund a payment. Declined refunds are not stored, so the key can be retried."""
    if refund.reason == "fraud":
        raise HTTPException(status_code=402, detail="Refund declined")

    return {
        "payment_id": payment_id,
        "status": "refunded",
        "refunded_at": datetime.now(UTC).isoformat(),
    }


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
