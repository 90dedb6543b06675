# src/stakeledger/api/__main__.py
from __future__ import annotations

import os

import uvicorn

from stakeledger.env import load_dotenv_if_present


def main() -> None:
    # Load .env early so STAKELEDGER_* vars exist before anything reads them.
    load_dotenv_if_present()

    # Import after dotenv load (prevents "config read before env" surprises)
    from stakeledger.api.app import create_app
    from stakeledger.runtime.node_config import load_node_config

    node = load_node_config()
    host = os.getenv("STAKELEDGER_API_HOST", node.api_host)
    port = int(os.getenv("STAKELEDGER_API_PORT", str(node.api_port)))

    uvicorn.run(create_app(), host=host, port=port, log_level=node.log_level.lower())


if __name__ == "__main__":
    main()
