# src/stakeledger/crypto/sig.py
from __future__ import annotations

"""Ed25519 signatures over settlement envelopes.

Owner ids are raw Ed25519 public keys in hex. An envelope is signed over its
canonical JSON (program_id, tx_type, signer, nonce, payload). The program id
binds a signature to one program, so it cannot be replayed on another one
run by the same key holders. The signature itself and any transport
metadata are outside the signed message.

Keys and signatures are accepted as hex or base64/base64url.
"""

import base64
import binascii
import json
from typing import Any, Dict, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

Json = Dict[str, Any]

ED25519_SEED_BYTES = 32
ED25519_EXPANDED_BYTES = 64
SIG_ENCODINGS = ("hex", "b64")


def _decode_bytes(s: str) -> bytes:
    s = str(s or "").strip()
    if not s:
        raise ValueError("empty key or signature")
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    padded = (s + "=" * (-len(s) % 4)).replace("-", "+").replace("_", "/")
    try:
        return base64.b64decode(padded, validate=True)
    except binascii.Error as e:
        raise ValueError("not hex or base64") from e


def _private_key(privkey: str) -> Ed25519PrivateKey:
    raw = _decode_bytes(privkey)
    # 64-byte expanded keys carry the seed first.
    if len(raw) == ED25519_EXPANDED_BYTES:
        raw = raw[:ED25519_SEED_BYTES]
    if len(raw) != ED25519_SEED_BYTES:
        raise ValueError("ed25519 privkey must be a 32-byte seed or 64-byte expanded key")
    return Ed25519PrivateKey.from_private_bytes(raw)


def owner_id_for(privkey: str) -> str:
    """Hex public key (the owner id) belonging to a private key."""
    pub = _private_key(privkey).public_key()
    return pub.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def canonical_tx_message(*, program_id: str, tx_type: str, signer: str, nonce: int, payload: Json) -> bytes:
    obj: Json = {
        "program_id": str(program_id),
        "tx_type": str(tx_type).strip().upper(),
        "signer": str(signer).strip(),
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    if encoding not in SIG_ENCODINGS:
        raise ValueError(f"unsupported signature encoding: {encoding}")
    sig = _private_key(privkey).sign(message)
    return sig.hex() if encoding == "hex" else base64.b64encode(sig).decode("ascii")


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        key = Ed25519PublicKey.from_public_bytes(_decode_bytes(pubkey))
        key.verify(_decode_bytes(sig), message)
    except (InvalidSignature, ValueError):
        return False
    return True


def sign_tx_envelope_dict(*, tx: Json, privkey: str, program_id: str, encoding: str = "hex") -> Json:
    """Return a copy of `tx` with normalized fields and its 'sig' populated."""
    out = dict(tx)
    out["tx_type"] = str(tx.get("tx_type") or "")
    out["signer"] = str(tx.get("signer") or "")
    out["nonce"] = int(tx.get("nonce") or 0)
    out["payload"] = tx.get("payload") if isinstance(tx.get("payload"), dict) else {}

    msg = canonical_tx_message(
        program_id=program_id,
        tx_type=out["tx_type"],
        signer=out["signer"],
        nonce=out["nonce"],
        payload=out["payload"],
    )
    out["sig"] = sign_ed25519(message=msg, privkey=privkey, encoding=encoding)
    return out


def verify_tx_signature(
    *,
    program_id: str,
    tx_type: str,
    signer: str,
    nonce: int,
    payload: Json,
    sig: str,
) -> Tuple[bool, Json]:
    """Check that `signer` (an owner id) signed the envelope."""
    if not str(sig or "").strip():
        return False, {"reason": "missing_signature"}
    msg = canonical_tx_message(program_id=program_id, tx_type=tx_type, signer=signer, nonce=nonce, payload=payload)
    if not verify_ed25519_signature(message=msg, sig=sig, pubkey=signer):
        return False, {"reason": "invalid_signature"}
    return True, {"pubkey": signer}
