from __future__ import annotations

import logging

from spamwatch.config import settings
from spamwatch.models.alert import TokenInfo
from spamwatch.services.cache import TTLCache
from spamwatch.services.chain import ChainClient
from spamwatch.utils.address import extract_candidate_addresses
from spamwatch.utils.units import format_units

logger = logging.getLogger("tokens")

ERC20_TOTAL_SUPPLY = "0x18160ddd"  # totalSupply()


class TokenClassifier:
    """Decide which addresses in a calldata blob are ERC20 contracts.

    A contract counts as ERC20 when it has bytecode and answers totalSupply()
    with a nonzero value. Tokens with zero supply are missed. Lookup failures
    of any kind resolve to "not ERC20".
    """

    def __init__(
        self,
        client: ChainClient,
        ignored_addresses: list[str] | None = None,
        cache: TTLCache | None = None,
    ):
        self._client = client
        ignored = ignored_addresses if ignored_addresses is not None else settings.ignored_erc20
        self._ignored = {a.lower() for a in ignored}
        self._cache = cache if cache is not None else TTLCache()

    async def is_erc20(self, address: str) -> tuple[bool, str]:
        address = address.lower()
        if address in self._ignored:
            return False, ""

        cached = self._cache.get(address)
        if cached is not None:
            return cached

        try:
            result = await self._query_contract(address)
        except Exception as e:
            logger.debug(f"ERC20 check failed for {address}: {e}")
            return False, ""

        # Missing code or zero supply can change once a token is deployed and minted
        if result[0]:
            self._cache.set(address, result)
        return result

    async def _query_contract(self, address: str) -> tuple[bool, str]:
        code = await self._client.get_bytecode(address)
        if not code or code == "0x":
            return False, ""

        raw = await self._client.call(address, ERC20_TOTAL_SUPPLY)
        if not raw or raw == "0x":
            return False, ""

        total_supply = int(raw, 16)
        return total_supply > 0, format_units(total_supply, 18)

    async def analyze_tokens(self, calldata: str) -> list[TokenInfo]:
        tokens: list[TokenInfo] = []
        for address in sorted(extract_candidate_addresses(calldata)):
            is_token, supply = await self.is_erc20(address)
            if is_token:
                logger.debug(f"{address} is ERC20 (totalSupply {supply})")
                tokens.append(TokenInfo(address=address, is_erc20=True))
        return tokens
