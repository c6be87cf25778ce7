"""Client for a diamond deployed on a live network."""

import logging
import time
from typing import Any, Callable, Iterable, Optional, Sequence

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import HTTPProvider, LegacyWebSocketProvider, Web3

from . import constants as c
from .abi import DIAMOND_ABI, ERC20_ABI
from .errors import RemoteError
from .schemas import Facet, FacetCut
from .utils import is_selector, normalize_address, normalize_selector, selector_of

logger = logging.getLogger(__name__)

DEFAULT_SEND_ATTEMPTS = 5
DEFAULT_RETRY_DELAY_SEC = 1
DEFAULT_RECEIPT_TIMEOUT_SEC = 120
DEFAULT_POLL_INTERVAL_SEC = 2

# Substrings of node errors raised when another transaction took our nonce
_NONCE_CONFLICTS = ("nonce too low", "nonce too high", "invalid nonce", "replacement transaction underpriced")

WATCHED_EVENTS = ["TransferSuccess", "ChargeSuccess", "NewPlan", "DiamondCut", "OwnershipTransferred"]

SPOT_TRANSFER = "transfer(address,address,uint256,uint8,string[],string)"
SPOT_TRANSFER_WITH_TYPE = "transfer(address,address,uint256,uint8,string[],string,string)"
CROSS_CHAIN_TRANSFER = "transfer(string,string,address,string,uint256,address,string,string[])"


def provider_for(url: str):
    """Web3 provider for an ``http(s)://`` or ``ws(s)://`` endpoint."""
    if url.startswith(("ws://", "wss://")):
        return LegacyWebSocketProvider(url)
    return HTTPProvider(url)


def _is_nonce_conflict(error: Exception) -> bool:
    message = str(error).lower()
    return any(conflict in message for conflict in _NONCE_CONFLICTS)


def send_with_retry(
    w3: Web3,
    account: LocalAccount,
    build: Callable[[int], dict],
    label: str,
    attempts: int = DEFAULT_SEND_ATTEMPTS,
    retry_delay: float = DEFAULT_RETRY_DELAY_SEC,
) -> str:
    """Sign, send and confirm a transaction, rebuilding it on nonce conflicts.

    ``build`` receives the pending nonce of ``account`` and returns the
    transaction dict. Each attempt re-reads the nonce, so a transaction that
    raced ours is skipped over instead of replaced.

    Returns:
        The hex hash of the mined transaction.

    Raises:
        RemoteError: The node rejected the transaction, the nonce kept
            conflicting for ``attempts`` tries, or the transaction reverted.
    """
    for attempt in range(1, attempts + 1):
        try:
            nonce = w3.eth.get_transaction_count(account.address, "pending")
            signed = account.sign_transaction(build(nonce))
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            if not _is_nonce_conflict(e):
                raise RemoteError(f"{label} failed: {e}")
            if attempt == attempts:
                raise RemoteError(f"{label} failed after {attempts} attempts: {e}")
            logger.warning("%s: nonce conflict (attempt %d/%d), retrying", label, attempt, attempts)
            time.sleep(retry_delay)
            continue

        receipt = w3.eth.wait_for_transaction_receipt(tx_hash, timeout=DEFAULT_RECEIPT_TIMEOUT_SEC)
        if receipt.status != 1:
            raise RemoteError(f"{label} transaction reverted", tx_hash=tx_hash.hex())
        logger.info("%s mined: %s", label, tx_hash.hex())
        return tx_hash.hex()
    raise RemoteError(f"{label} was never sent")


class DiamondRemote:
    """Loupe queries, ownership, cuts and payments against a deployed diamond.

    Args:
        diamond_address: Address of the diamond proxy.
        rpc_url: JSON-RPC endpoint, HTTP or websocket. Ignored when ``w3`` is given.
        private_key: Key that signs transactions. Read-only without it.
        w3: Preconfigured Web3 instance.
    """

    def __init__(
        self,
        diamond_address: str,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        w3: Optional[Web3] = None,
    ):
        if w3 is None:
            if rpc_url is None:
                raise ValueError("Either rpc_url or w3 is required")
            w3 = Web3(provider_for(rpc_url))
        self._w3 = w3
        self._account: Optional[LocalAccount] = Account.from_key(private_key) if private_key else None
        self.address = normalize_address(diamond_address)
        self._contract = w3.eth.contract(address=self.address, abi=DIAMOND_ABI)

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    # ========================================================================
    # Loupe
    # ========================================================================

    def facets(self) -> list[Facet]:
        return [Facet.from_abi(f) for f in self._call("facets")]

    def facet_addresses(self) -> list[str]:
        return [normalize_address(a) for a in self._call("facetAddresses")]

    def facet_function_selectors(self, facet: str) -> list[str]:
        return [normalize_selector(s) for s in self._call("facetFunctionSelectors", normalize_address(facet))]

    def facet_address(self, function: str) -> str:
        """Facet implementing a signature (e.g. ``"owner()"``) or a selector."""
        selector = normalize_selector(function) if is_selector(function) else selector_of(function)
        return normalize_address(self._call("facetAddress", bytes.fromhex(selector.removeprefix("0x"))))

    def supports_interface(self, interface_id: str) -> bool:
        return self._call("supportsInterface", bytes.fromhex(normalize_selector(interface_id).removeprefix("0x")))

    # ========================================================================
    # Ownership and cuts
    # ========================================================================

    def owner(self) -> str:
        return normalize_address(self._call("owner"))

    def transfer_ownership(self, new_owner: str) -> str:
        """Send ``transferOwnership`` and return the transaction hash."""
        return self._transact("transferOwnership", normalize_address(new_owner))

    def diamond_cut(self, cuts: Iterable[FacetCut], init: str, calldata: bytes = b"") -> str:
        """Send a ``diamondCut`` and return the transaction hash."""
        return self._transact(
            "diamondCut",
            [cut.to_abi() for cut in cuts],
            normalize_address(init),
            calldata,
        )

    # ========================================================================
    # Payments
    # ========================================================================

    def get_token_address(self, symbol: str) -> str:
        return normalize_address(self._call("getTokenAddress", symbol))

    def set_token_address(self, symbol: str, token: str) -> str:
        return self._transact("setTokenAddress", symbol, normalize_address(token))

    def get_total_transferred(self, token: str) -> int:
        return self._call("getTotalTransferred", normalize_address(token))

    def get_axelar_contract(self, chain: str) -> str:
        return normalize_address(self._call("getAxelarContract", chain))

    def set_axelar_contract(self, chain: str, gateway: str) -> str:
        return self._transact("setAxelarContract", chain, normalize_address(gateway))

    def approve(self, token: str, amount: int) -> str:
        """Let the diamond pull ``amount`` of ``token`` from the signing account."""
        erc20 = self._w3.eth.contract(address=normalize_address(token), abi=ERC20_ABI)
        return self._transact("approve", self.address, amount, contract=erc20)

    def transfer(
        self,
        recipient: str,
        token: str,
        amount: int,
        token_type: c.TokenType,
        tags: Sequence[str] = (),
        payment_ref: str = "",
        payment_type: Optional[str] = None,
    ) -> str:
        """Send a spot payment through the diamond and return its transaction hash.

        Native payments attach ``amount`` as value. ERC-20 payments approve
        the diamond for ``amount`` first.
        """
        token_type = c.TokenType(token_type)
        value = 0
        if token_type == c.TokenType.NATIVE:
            token = c.NATIVE_TOKEN
            value = amount
        else:
            self.approve(token, amount)

        args = [normalize_address(recipient), normalize_address(token), amount, int(token_type), list(tags), payment_ref]
        if payment_type is None:
            return self._transact(SPOT_TRANSFER, *args, value=value)
        return self._transact(SPOT_TRANSFER_WITH_TYPE, *args, payment_type, value=value)

    def transfer_cross_chain(
        self,
        source_chain: str,
        destination_chain: str,
        recipient: str,
        token_symbol: str,
        amount: int,
        token: str,
        payment_ref: str = "",
        tags: Sequence[str] = (),
    ) -> str:
        """Approve the diamond and bridge ``amount`` of ``token`` to ``destination_chain``."""
        self.approve(token, amount)
        return self._transact(
            CROSS_CHAIN_TRANSFER,
            source_chain,
            destination_chain,
            normalize_address(recipient),
            token_symbol,
            amount,
            normalize_address(token),
            payment_ref,
            list(tags),
        )

    # ========================================================================
    # Events
    # ========================================================================

    def get_events(self, event_name: str, from_block: int, to_block: int) -> list[dict[str, Any]]:
        """Decoded ``event_name`` logs of the diamond in a block range."""
        event = getattr(self._contract.events, event_name)
        try:
            logs = event().get_logs(from_block=from_block, to_block=to_block)
        except Exception as e:
            raise RemoteError(f"Failed to fetch {event_name} logs: {e}")
        return [
            {"name": event_name, "blockNumber": log["blockNumber"], **dict(log["args"])}
            for log in logs
        ]

    def poll_events(
        self,
        callback: Callable[[dict[str, Any]], None],
        event_names: Iterable[str] = WATCHED_EVENTS,
        from_block: Optional[int] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
        max_polls: Optional[int] = None,
    ) -> int:
        """Call ``callback`` for every new diamond event until ``max_polls`` rounds ran.

        Returns:
            The last block processed.
        """
        event_names = list(event_names)
        last_block = self._w3.eth.block_number if from_block is None else from_block - 1
        polls = 0
        while max_polls is None or polls < max_polls:
            latest = self._w3.eth.block_number
            if latest > last_block:
                for name in event_names:
                    for event in self.get_events(name, last_block + 1, latest):
                        callback(event)
                last_block = latest
            polls += 1
            if max_polls is None or polls < max_polls:
                time.sleep(poll_interval)
        return last_block

    # ========================================================================
    # Internals
    # ========================================================================

    def _call(self, function_name: str, *args: Any) -> Any:
        try:
            return getattr(self._contract.functions, function_name)(*args).call()
        except Exception as e:
            raise RemoteError(f"{function_name} call failed: {e}")

    def _transact(self, function: str, *args: Any, value: int = 0, contract=None) -> str:
        """Sign and send ``function`` (a name, or a signature for overloads)."""
        if self._account is None:
            raise RemoteError(f"{function} requires a private key")
        contract = contract or self._contract
        if "(" in function:
            fn = contract.get_function_by_signature(function)(*args)
        else:
            fn = getattr(contract.functions, function)(*args)
        account = self._account

        def build(nonce: int) -> dict:
            params = {"from": account.address, "nonce": nonce, "chainId": self._w3.eth.chain_id}
            if value:
                params["value"] = value
            return fn.build_transaction(params)

        return send_with_retry(self._w3, account, build, function)
