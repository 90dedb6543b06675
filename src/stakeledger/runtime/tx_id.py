# src/stakeledger/runtime/tx_id.py
from __future__ import annotations

import hashlib
import json
from typing import Any, Dict

from stakeledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _json_canonical(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_tx_id(
    *,
    program_id: str,
    tx_type: str,
    signer: str,
    nonce: int,
    payload: Json,
) -> str:
    """
    Canonical settlement id (single source of truth, and the idempotency key).

    Contract:
      - Includes program_id (identical requests against two programs cannot collide)
      - Excludes sig (signature encoding MUST NOT affect the id)
      - Excludes submission metadata (retries of one request share one id)
    """
    obj: Json = {
        "program_id": str(program_id),
        "tx_type": str(tx_type).strip().upper(),
        "signer": str(signer).strip(),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return _sha256_hex(_json_canonical(obj))


def compute_tx_id_from_envelope(program_id: str, env: TxEnvelope) -> str:
    return compute_tx_id(
        program_id=str(program_id),
        tx_type=env.tx_type,
        signer=env.signer,
        nonce=int(env.nonce),
        payload=env.payload,
    )
