"""ABI encoding helpers and the contract ABI fragments used by the remote client."""

from typing import Any

from eth_abi import decode, encode

from .utils import canonical_signature, normalize_selector, selector_of


def parse_signature(signature: str) -> tuple[str, list[str]]:
    """Split a canonical signature into its name and top-level argument types.

    >>> parse_signature("diamondCut((address,uint8,bytes4[])[],address,bytes)")
    ('diamondCut', ['(address,uint8,bytes4[])[]', 'address', 'bytes'])
    """
    signature = canonical_signature(signature)
    open_idx = signature.find("(")
    if open_idx <= 0 or not signature.endswith(")"):
        raise ValueError(f"Invalid function signature: {signature}")
    name = signature[:open_idx]
    body = signature[open_idx + 1 : -1]

    types: list[str] = []
    depth = 0
    current = ""
    for ch in body:
        if ch == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current += ch
    if current:
        types.append(current)
    return name, types


def encode_call(signature: str, *args: Any) -> bytes:
    """Selector followed by the ABI-encoded arguments."""
    _, types = parse_signature(signature)
    selector = bytes.fromhex(selector_of(signature).removeprefix("0x"))
    return selector + encode(types, list(args))


def decode_call(signature: str, data: bytes) -> tuple:
    """Decode the arguments of calldata produced for ``signature``.

    Raises:
        ValueError: If the calldata selector does not match the signature.
    """
    if normalize_selector(data[:4]) != selector_of(signature):
        raise ValueError(f"Calldata selector does not match {signature}")
    _, types = parse_signature(signature)
    return tuple(decode(types, data[4:]))


# ============================================================================
# ABI fragments
# ============================================================================

FACET_CUT_COMPONENTS = [
    {"name": "facetAddress", "type": "address"},
    {"name": "action", "type": "uint8"},
    {"name": "functionSelectors", "type": "bytes4[]"},
]

DIAMOND_CUT_ABI = [
    {
        "inputs": [
            {"components": FACET_CUT_COMPONENTS, "name": "_diamondCut", "type": "tuple[]"},
            {"name": "_init", "type": "address"},
            {"name": "_calldata", "type": "bytes"},
        ],
        "name": "diamondCut",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"components": FACET_CUT_COMPONENTS, "indexed": False, "name": "_diamondCut", "type": "tuple[]"},
            {"indexed": False, "name": "_init", "type": "address"},
            {"indexed": False, "name": "_calldata", "type": "bytes"},
        ],
        "name": "DiamondCut",
        "type": "event",
    },
]

DIAMOND_LOUPE_ABI = [
    {
        "inputs": [],
        "name": "facets",
        "outputs": [
            {
                "components": [
                    {"name": "facetAddress", "type": "address"},
                    {"name": "functionSelectors", "type": "bytes4[]"},
                ],
                "name": "facets_",
                "type": "tuple[]",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "facetAddresses",
        "outputs": [{"name": "facetAddresses_", "type": "address[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "_facet", "type": "address"}],
        "name": "facetFunctionSelectors",
        "outputs": [{"name": "facetFunctionSelectors_", "type": "bytes4[]"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "_functionSelector", "type": "bytes4"}],
        "name": "facetAddress",
        "outputs": [{"name": "facetAddress_", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "_interfaceId", "type": "bytes4"}],
        "name": "supportsInterface",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
]

OWNERSHIP_ABI = [
    {
        "inputs": [],
        "name": "owner",
        "outputs": [{"name": "owner_", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "_newOwner", "type": "address"}],
        "name": "transferOwnership",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "previousOwner", "type": "address"},
            {"indexed": True, "name": "newOwner", "type": "address"},
        ],
        "name": "OwnershipTransferred",
        "type": "event",
    },
]


def _string_list(name: str) -> dict:
    return {"name": name, "type": "string[]"}


SPOT_PAYMENT_ABI = [
    {
        "inputs": [
            {"name": "recipient", "type": "address"},
            {"name": "tokenAddress", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "tokenType", "type": "uint8"},
            _string_list("tags"),
            {"name": "paymentRef", "type": "string"},
        ],
        "name": "transfer",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {"name": "recipient", "type": "address"},
            {"name": "tokenAddress", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "tokenType", "type": "uint8"},
            _string_list("tags"),
            {"name": "paymentRef", "type": "string"},
            {"name": "paymentType", "type": "string"},
        ],
        "name": "transfer",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"name": "symbol", "type": "string"}, {"name": "tokenAddress", "type": "address"}],
        "name": "setTokenAddress",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "symbol", "type": "string"}],
        "name": "getTokenAddress",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenAddress", "type": "address"}],
        "name": "getTotalTransferred",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "sender", "type": "address"},
            {"indexed": False, "name": "recipient", "type": "address"},
            {"indexed": False, "name": "tokenAddress", "type": "address"},
            {"indexed": False, "name": "text", "type": "string"},
            {"indexed": False, "name": "tags", "type": "string[]"},
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "datetime", "type": "uint256"},
            {"indexed": False, "name": "paymentRef", "type": "string"},
            {"indexed": False, "name": "paymentType", "type": "string"},
        ],
        "name": "TransferSuccess",
        "type": "event",
    },
]

SUBSCRIPTION_EVENTS_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "planId", "type": "uint256"},
            {"indexed": True, "name": "owner", "type": "address"},
            {"indexed": False, "name": "fee", "type": "uint256"},
            {"indexed": False, "name": "autoRenew", "type": "bool"},
            {"indexed": False, "name": "duration", "type": "uint256"},
            {"indexed": False, "name": "paymentInterval", "type": "uint256"},
            {"indexed": False, "name": "title", "type": "bytes32"},
        ],
        "name": "NewPlan",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "planId", "type": "uint256"},
            {"indexed": True, "name": "subscriber", "type": "address"},
            {"indexed": False, "name": "token", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "timestamp", "type": "uint256"},
        ],
        "name": "ChargeSuccess",
        "type": "event",
    },
]

CROSS_CHAIN_PAYMENT_ABI = [
    {
        "inputs": [
            {"name": "sourceChain", "type": "string"},
            {"name": "destinationChain", "type": "string"},
            {"name": "recipient", "type": "address"},
            {"name": "tokenSymbol", "type": "string"},
            {"name": "amount", "type": "uint256"},
            {"name": "tokenContract", "type": "address"},
            {"name": "paymentRef", "type": "string"},
            _string_list("tags"),
        ],
        "name": "transfer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "chain", "type": "string"}, {"name": "gateway", "type": "address"}],
        "name": "setAxelarContract",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "chain", "type": "string"}],
        "name": "getAxelarContract",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]

DIAMOND_ABI = (
    DIAMOND_CUT_ABI
    + DIAMOND_LOUPE_ABI
    + OWNERSHIP_ABI
    + SPOT_PAYMENT_ABI
    + CROSS_CHAIN_PAYMENT_ABI
    + SUBSCRIPTION_EVENTS_ABI
)

# Minimal ERC-20 surface used to approve the diamond before a payment
ERC20_ABI = [
    {
        "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]
