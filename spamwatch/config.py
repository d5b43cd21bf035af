from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # RPC endpoints
    ws_rpc_url: str = "wss://base-rpc.publicnode.com"
    http_rpc_url: str = "https://base-rpc.publicnode.com"
    rpc_timeout_seconds: float = 10.0

    # Spam window
    block_range: int = 20
    min_consecutive_blocks: int = 0

    # Reconnect policy for the block stream
    max_retries: int = 5
    retry_delay_ms: int = 5000

    # A head can arrive before the HTTP node serves its block
    block_fetch_retries: int = 3
    block_fetch_delay_ms: int = 500

    # Addresses never checked as ERC20 (WETH, USDC on Base)
    ignored_erc20: list[str] = [
        "0x4200000000000000000000000000000000000006",
        "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
    ]

    # Selector table (empty = bundled data/methods.json)
    methods_file: str = ""

    # Positive ERC20 result cache (0 = no caching)
    token_cache_ttl_seconds: int = 600

    # Alerts kept in memory for /v1/alerts
    recent_alerts_limit: int = 200

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    monitor_autostart: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
