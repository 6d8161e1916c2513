"""
Configuration - Settings read from the environment.

With no CHAIN2048_RPC_URL the package runs against the in-memory ledger,
scanning from block 0.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
import logging
import os

from .leaderboard.aggregator import DEFAULT_CACHE_TTL, DEFAULT_DEPLOY_BLOCK
from .leaderboard.cache import default_cache_path
from .leaderboard.ranges import DEFAULT_BLOCK_STEP, DEFAULT_SCAN_DELAY

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class Settings:
    env: str = "development"
    rpc_url: str | None = None
    contract_address: str | None = None
    deploy_block: int = DEFAULT_DEPLOY_BLOCK
    block_step: int = DEFAULT_BLOCK_STEP
    scan_delay: float = DEFAULT_SCAN_DELAY
    cache_file: Path = field(default_factory=default_cache_path)
    cache_ttl: float = DEFAULT_CACHE_TTL
    receipt_timeout: float = 120.0
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def uses_chain(self) -> bool:
        return bool(self.rpc_url and self.contract_address)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        rpc_url = env.get("CHAIN2048_RPC_URL") or None
        # The in-memory ledger starts at block 0
        default_deploy = DEFAULT_DEPLOY_BLOCK if rpc_url else 0
        cache_file = env.get("CHAIN2048_CACHE_FILE")

        return cls(
            env=env.get("CHAIN2048_ENV", "development"),
            rpc_url=rpc_url,
            contract_address=env.get("CHAIN2048_CONTRACT_ADDRESS") or None,
            deploy_block=int(env.get("CHAIN2048_DEPLOY_BLOCK", default_deploy)),
            block_step=int(env.get("CHAIN2048_BLOCK_STEP", DEFAULT_BLOCK_STEP)),
            scan_delay=float(env.get("CHAIN2048_SCAN_DELAY", DEFAULT_SCAN_DELAY)),
            cache_file=Path(cache_file) if cache_file else default_cache_path(),
            cache_ttl=float(env.get("CHAIN2048_CACHE_TTL", DEFAULT_CACHE_TTL)),
            receipt_timeout=float(env.get("CHAIN2048_RECEIPT_TIMEOUT", 120)),
            log_level=env.get("CHAIN2048_LOG_LEVEL", "INFO").upper(),
            allowed_origins=env.get("ALLOWED_ORIGINS", "*").split(","),
        )


def configure_logging(level: str = "INFO"):
    """Root logging setup for the app and CLI entry points."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
