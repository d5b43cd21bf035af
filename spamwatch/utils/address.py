import re

ZERO_ADDRESS = "0x" + "0" * 40

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Selector prefix: "0x" + 4 bytes
_SELECTOR_LEN = 10
_WORD_LEN = 64


def validate_evm_address(address: str) -> bool:
    return bool(_EVM_ADDRESS_RE.match(address))


def normalize_address(address: str) -> str:
    return address.lower()


def extract_candidate_addresses(calldata: str) -> set[str]:
    """Pull address-shaped values out of ABI-encoded calldata.

    Walks the arguments in 32-byte words and takes the low 20 bytes of each.
    This is a heuristic, not an ABI decoder: integers that happen to look
    like addresses slip through, and addresses inside dynamic bytes are
    missed.
    """
    candidates: set[str] = set()
    args = calldata[_SELECTOR_LEN:]

    for i in range(0, len(args), _WORD_LEN):
        word = args[i : i + _WORD_LEN]
        candidate = "0x" + word[24:]
        if validate_evm_address(candidate) and candidate.lower() != ZERO_ADDRESS:
            candidates.add(candidate.lower())

    return candidates
