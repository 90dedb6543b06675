# src/stakeledger/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying settlement envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Optional

from stakeledger.ledger.state import ensure_state
from stakeledger.runtime.apply.admin import apply_admin
from stakeledger.runtime.apply.staking import apply_staking
from stakeledger.runtime.errors import ApplyError, UnknownOperation
from stakeledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[..., Optional[Json]]

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
_APPLIERS: tuple[ApplyFn, ...] = (
    apply_admin,
    apply_staking,
)


def apply_tx(state: Json, env: Any, *, now: int) -> Json:
    """Dispatch an envelope to the first domain applier that claims it."""

    ensure_state(state)

    # Tests and some tools pass raw dict envelopes.
    env_norm: TxEnvelope = TxEnvelope.from_json(env)

    t = env_norm.tx_type
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})
    if not env_norm.signer:
        raise ApplyError("invalid_tx", "missing_signer", {"tx_type": t})

    for fn in _APPLIERS:
        out = fn(state, env_norm, now=int(now))
        if out is not None:
            return out

    raise UnknownOperation(tx_type=t)


def apply_tx_atomic(state: Json, env: Any, *, now: int) -> Json:
    """Apply with fail-atomic semantics.

    On success the state is updated as if apply_tx() ran directly.
    On ApplyError the state is unchanged.
    """
    snapshot = copy.deepcopy(state)
    meta = apply_tx(snapshot, env, now=now)

    # Commit in place so callers holding references to `state` see the update.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["ApplyError", "apply_tx", "apply_tx_atomic", "Json"]
