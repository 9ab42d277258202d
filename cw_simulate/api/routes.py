from __future__ import annotations

"""
Contract routes

Endpoints:
  - GET /contract/{address}/instantiate/{payload}?account=
  - GET /contract/{address}/execute/{payload}?account=
  - GET /contract/{address}/query/{payload}
  - GET /contracts

``payload`` is the base64 encoding of the JSON message. Bodies are
``{"data": ...}`` on success and ``{"error": "..."}`` on failure; ``data``
is the call's JSON result, decoded when it is valid JSON.
"""

import base64
import binascii
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..engine.instance import KIND_EXECUTE, KIND_INSTANTIATE, KIND_QUERY
from ..engine.simulator import Simulator

log = logging.getLogger(__name__)

router = APIRouter(tags=["contract"])


def get_simulator(request: Request) -> Simulator:
    return request.app.state.simulator


def _decode_payload(payload: str) -> Optional[bytes]:
    # browsers and shells often drop base64 padding
    padded = (payload + "=" * (-len(payload) % 4)).encode("ascii", errors="replace")
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        pass
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError):
        return None


def _as_data(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return text


def _run(sim: Simulator, kind: str, address: str, payload: str, account: Optional[str]) -> JSONResponse:
    raw = _decode_payload(payload)
    if raw is None:
        return JSONResponse({"error": "invalid base64 payload"}, status_code=400)
    log.debug("GET /contract/%s/%s account=%s", address, kind, account)
    result = sim.run(kind, raw, account, contract=address)
    if not result.ok:
        return JSONResponse({"error": result.error})
    return JSONResponse({"data": _as_data(result.to_json())})


@router.get("/contract/{address}/instantiate/{payload:path}")
def instantiate(address: str, payload: str, account: Optional[str] = None, sim: Simulator = Depends(get_simulator)):
    return _run(sim, KIND_INSTANTIATE, address, payload, account)


@router.get("/contract/{address}/execute/{payload:path}")
def execute(address: str, payload: str, account: Optional[str] = None, sim: Simulator = Depends(get_simulator)):
    return _run(sim, KIND_EXECUTE, address, payload, account)


@router.get("/contract/{address}/query/{payload:path}")
def query(address: str, payload: str, sim: Simulator = Depends(get_simulator)):
    return _run(sim, KIND_QUERY, address, payload, None)


@router.get("/contracts")
def contracts(sim: Simulator = Depends(get_simulator)):
    with sim.chain.lock:
        data = [inst.describe() for inst in sim.chain.registry]
    return {"data": data}


def get_router() -> APIRouter:
    return router
