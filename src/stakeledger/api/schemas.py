from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation. Ledger-level validation
(amounts, thresholds, rates) happens in the apply layer.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="STAKE, UNSTAKE, HARVEST, UPDATE_CONFIG, ...")
    signer: str = Field(..., min_length=1, description="Owner id (hex Ed25519 public key)")
    nonce: int = Field(default=0, ge=0, description="Client-chosen discriminator; part of the settlement id")
    payload: Dict[str, Any] = Field(default_factory=dict)
    sig: str = Field(default="", description="Hex or base64 Ed25519 signature over the canonical envelope")


class ConvertToRawRequest(BaseModel):
    # Strings keep every digit; JSON numbers are parsed as floats by some clients.
    display: Union[str, int] = Field(..., description="Human-facing amount, e.g. \"1.5\"")
    decimals: Optional[int] = Field(default=None, ge=0, le=30, description="Defaults to the program's decimals")
