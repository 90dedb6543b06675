from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "testnet" | "prod"
    program_id: str
    node_id: str
    cors_origins: List[str]

    @property
    def docs_enabled(self) -> bool:
        return self.mode != "prod"


def parse_cors_origins(raw: str, *, mode: str) -> List[str]:
    """Parse CORS origins with production-safe defaults.

    Policy:
      - empty -> CORS disabled (fail-closed)
      - wildcard "*" is rejected in prod
      - in non-prod modes, "*" is allowed for convenience
    """
    origins = [o.strip() for o in str(raw or "").split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in STAKELEDGER_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def load_api_config() -> ApiConfig:
    mode = (os.getenv("STAKELEDGER_MODE") or "prod").strip().lower()
    return ApiConfig(
        mode=mode,
        program_id=(os.getenv("STAKELEDGER_PROGRAM_ID") or "stakeledger-dev").strip(),
        node_id=(os.getenv("STAKELEDGER_NODE_ID") or "local-node").strip(),
        cors_origins=parse_cors_origins(os.getenv("STAKELEDGER_CORS_ORIGINS", ""), mode=mode),
    )
