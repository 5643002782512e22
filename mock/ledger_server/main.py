from fastapi import FastAPI, Header, HTTPException
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Payment Provider", version="1.0.0")
# Support both local development and Docker
DATA_FILE = Path(os.environ.get("LEDGER_STUB_FILE", Path(__file__).resolve().parent / "payments.json"))
TOKEN = os.environ.get("LEDGER_STUB_TOKEN", "test-token")


def _payments() -> dict:
    if not DATA_FILE.exists():
        return {}
    return json.loads(DATA_FILE.read_text())


def _check_auth(authorization: str | None) -> None:
    if authorization != f"Bearer {TOKEN}":
        raise HTTPException(status_code=401, detail="invalid token")


@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/users/me")
def whoami(authorization: str | None = Header(default=None)):
    _check_auth(authorization)
    return {"id": 1, "nickname": "condo-cron-sandbox"}

@app.get("/v1/payments/{payment_id}")
def get_payment(payment_id: str, authorization: str | None = Header(default=None)):
    _check_auth(authorization)
    payments = _payments()
    if payment_id not in payments:
        raise HTTPException(status_code=404, detail="payment not found")
    return {"id": payment_id, "status": payments[payment_id]}
