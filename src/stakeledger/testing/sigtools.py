from __future__ import annotations

import hashlib
from typing import Any, Dict, Tuple

from stakeledger.crypto.sig import owner_id_for, sign_tx_envelope_dict

Json = Dict[str, Any]

_SEED_DOMAIN = "stakeledger-test-ed25519:"

# Program id the test executors run under; signatures are bound to it.
TEST_PROGRAM_ID = "test-program"


def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, str]:
    """Derive a stable Ed25519 keypair from a label. TEST ONLY.

    Returns (owner_id_hex, privkey_seed_hex).
    """
    seed_hex = hashlib.sha256((_SEED_DOMAIN + (label or "")).encode("utf-8")).hexdigest()
    return owner_id_for(seed_hex), seed_hex


def signed_envelope(
    *,
    label: str,
    tx_type: str,
    nonce: int,
    payload: Json,
    program_id: str = TEST_PROGRAM_ID,
) -> Json:
    """Build and sign an envelope whose signer is the test key for `label`."""
    owner, privkey = deterministic_ed25519_keypair(label=label)
    tx = {"tx_type": tx_type, "signer": owner, "nonce": int(nonce), "payload": dict(payload)}
    return sign_tx_envelope_dict(tx=tx, privkey=privkey, program_id=program_id)
