from __future__ import annotations

from pydantic import BaseModel


class TokenInfo(BaseModel):
    address: str
    is_erc20: bool


class SpamAlert(BaseModel):
    from_address: str
    to_address: str | None = None
    tx_hash: str
    selector: str
    method_name: str
    occurrence_count: int
    block_span: int
    first_block: int
    current_block: int
    fee_gwei: float = 0.0
    priority_fee_gwei: float = 0.0
    tokens: list[TokenInfo] = []

    model_config = {
        "json_schema_extra": {
            "example": {
                "from_address": "0x1111111111111111111111111111111111111111",
                "to_address": "0x4752ba5dbc23f44d87826276bf6fd6b1c372ad24",
                "tx_hash": "0x" + "ab" * 32,
                "selector": "0x7ff36ab5",
                "method_name": "swapExactETHForTokens",
                "occurrence_count": 3,
                "block_span": 4,
                "first_block": 21000000,
                "current_block": 21000004,
                "fee_gwei": 0.12,
                "priority_fee_gwei": 0.05,
                "tokens": [
                    {
                        "address": "0x2222222222222222222222222222222222222222",
                        "is_erc20": True,
                    }
                ],
            }
        }
    }


class ActivityResponse(BaseModel):
    address: str
    last_seen_block: int
    methods: dict[str, dict[str, int]] = {}
