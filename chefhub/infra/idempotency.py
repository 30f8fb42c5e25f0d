import hashlib, json
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from .redis_client import get_redis

DONE_TTL_SEC = 60 * 60 * 24
PROCESSING_TTL_SEC = 60


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hash_request(route_key: str, payload: str) -> str:
    h = hashlib.sha256()
    h.update(route_key.encode("utf-8"))
    h.update(b"|")
    h.update((payload or "").encode("utf-8"))
    return h.hexdigest()


def _idemp_redis_key(principal_id: int, route_key: str, idem_key: str) -> str:
    return f"chefhub:idemp:{principal_id}:{route_key}:{idem_key}"


def idempotency_precheck(
    idem_key: Optional[str], *, principal_id: int, route_key: str, payload: str
) -> Union[tuple[str, str], JSONResponse, None]:
    """Return None when no Idempotency-Key was sent (plain request).
       Return (redis_key, request_hash) if the caller should proceed and store its result.
       Return JSONResponse if a stored response should be replayed."""
    if not idem_key:
        return None

    req_hash = _hash_request(route_key, payload)
    rkey = _idemp_redis_key(principal_id, route_key, idem_key)
    r = get_redis()

    raw = r.get(rkey)
    if raw:
        data = json.loads(raw)
        # Same key with a different payload is a client bug, not a retry
        if data.get("request_hash") and data["request_hash"] != req_hash:
            raise HTTPException(status_code=409, detail="Idempotency-Key reused with different request payload")
        if data.get("state") == "done":
            return JSONResponse(content=data.get("body"), status_code=int(data.get("status", 200)))
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    processing_payload = {
        "state": "processing",
        "status": None,
        "body": None,
        "created_at": _iso_now(),
        "completed_at": None,
        "request_hash": req_hash,
    }
    ok = r.set(rkey, json.dumps(processing_payload), ex=PROCESSING_TTL_SEC, nx=True)
    if not ok:
        # someone else won the race
        raise HTTPException(status_code=409, detail="Request with this Idempotency-Key is still processing. Retry shortly.")

    return (rkey, req_hash)


def idempotency_store_result(redis_key: str, req_hash: str, *, status: int, body: dict) -> None:
    payload = {
        "state": "done",
        "status": int(status),
        "body": body,
        "created_at": None,
        "completed_at": _iso_now(),
        "request_hash": req_hash,
    }
    get_redis().set(redis_key, json.dumps(payload), ex=DONE_TTL_SEC)


def idempotency_clear_key(redis_key: str) -> None:
    """Clear key on error so the client can retry."""
    get_redis().delete(redis_key)
