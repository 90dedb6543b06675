from __future__ import annotations

from stakeledger.crypto.sig import verify_tx_signature
from stakeledger.runtime.tx_id import compute_tx_id, compute_tx_id_from_envelope
from stakeledger.runtime.tx_types import TxEnvelope
from stakeledger.testing.sigtools import TEST_PROGRAM_ID, deterministic_ed25519_keypair, signed_envelope


def test_deterministic_keys_are_stable() -> None:
    a1 = deterministic_ed25519_keypair(label="alice")
    a2 = deterministic_ed25519_keypair(label="alice")
    b = deterministic_ed25519_keypair(label="bob")
    assert a1 == a2
    assert a1 != b
    assert len(a1[0]) == 64


def test_signed_envelope_verifies_and_tampering_fails() -> None:
    env = signed_envelope(label="alice", tx_type="stake", nonce=3, payload={"amount_raw": 10})
    fields = {k: env[k] for k in ("tx_type", "signer", "nonce", "payload", "sig")}
    ok, details = verify_tx_signature(program_id=TEST_PROGRAM_ID, **fields)
    assert ok, details

    ok, details = verify_tx_signature(
        program_id=TEST_PROGRAM_ID, tx_type=env["tx_type"], signer=env["signer"], nonce=4, payload=env["payload"], sig=env["sig"]
    )
    assert not ok
    assert details["reason"] == "invalid_signature"


def test_tx_id_is_canonical() -> None:
    base = dict(program_id="p", tx_type="STAKE", signer="s", nonce=1, payload={"b": 2, "a": 1})
    tid = compute_tx_id(**base)
    assert len(tid) == 64
    assert compute_tx_id(**dict(base, tx_type=" stake ")) == tid
    assert compute_tx_id(**dict(base, payload={"a": 1, "b": 2})) == tid
    assert compute_tx_id(**dict(base, nonce=2)) != tid
    assert compute_tx_id(**dict(base, program_id="q")) != tid

    env = TxEnvelope(tx_type="STAKE", signer="s", nonce=1, payload={"a": 1, "b": 2}, sig="ff")
    assert compute_tx_id_from_envelope("p", env) == tid


def test_signature_is_bound_to_program_id() -> None:
    env = signed_envelope(label="alice", tx_type="STAKE", nonce=1, payload={"amount_raw": 10}, program_id="program-a")
    fields = {k: env[k] for k in ("tx_type", "signer", "nonce", "payload", "sig")}

    ok, _ = verify_tx_signature(program_id="program-a", **fields)
    assert ok
    ok, details = verify_tx_signature(program_id="program-b", **fields)
    assert not ok
    assert details["reason"] == "invalid_signature"
