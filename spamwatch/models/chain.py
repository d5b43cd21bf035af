from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from spamwatch.utils.units import parse_quantity


class BlockHeader(BaseModel):
    number: int
    hash: str | None = None

    @field_validator("number", mode="before")
    @classmethod
    def _parse_number(cls, v):
        return parse_quantity(v)


class Transaction(BaseModel):
    hash: str
    from_address: str = Field(alias="from")
    to: str | None = None
    input: str = "0x"
    max_fee_per_gas: int | None = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: int | None = Field(
        default=None, alias="maxPriorityFeePerGas"
    )

    model_config = {"populate_by_name": True}

    @field_validator("max_fee_per_gas", "max_priority_fee_per_gas", mode="before")
    @classmethod
    def _parse_fee(cls, v):
        return parse_quantity(v)

    @field_validator("input", mode="before")
    @classmethod
    def _default_input(cls, v):
        return v or "0x"


class Block(BaseModel):
    number: int
    hash: str | None = None
    transactions: list[Transaction] = []

    @field_validator("number", mode="before")
    @classmethod
    def _parse_number(cls, v):
        return parse_quantity(v)
