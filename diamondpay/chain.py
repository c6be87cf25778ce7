"""Local chain that executes diamond calls with EVM transaction semantics.

Each top-level call runs inside :meth:`Chain.transaction`: contract state and
native balances are snapshotted first and restored if anything raises, so a
failed call never leaves partial changes behind. Events emitted during a
transaction are buffered and only published (to the log and to listeners)
once it commits.
"""

from __future__ import annotations

import copy
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from eth_account import Account
from eth_utils import keccak, to_bytes, to_checksum_address

from .constants import SECONDS_PER_DAY
from .errors import EconomicError
from .schemas import Event
from .utils import normalize_address

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_ID = 31337
DEFAULT_SIGNER_BALANCE = 10_000 * 10**18

EventListener = Callable[[Event], None]


class Contract:
    """Base class for contracts deployed on a :class:`Chain`.

    Mutable contract data lives in ``self.state`` so that the chain can
    snapshot and restore it around transactions. Stateless contracts (facets)
    leave it as ``None``.
    """

    def __init__(self) -> None:
        self.address: str | None = None
        self.chain: Chain | None = None
        self.state: Any = None

    @property
    def deployed(self) -> bool:
        return self.address is not None

    def on_deploy(self, deployer: str) -> None:
        """Constructor body, run inside the deployment transaction."""

    def code(self) -> bytes:
        """Stand-in bytecode; non-empty for every deployed contract."""
        return type(self).__name__.encode()

    def emit(self, event: Event) -> None:
        self._require_chain().emit(self.address, event)

    def _require_chain(self) -> Chain:
        if self.chain is None:
            raise RuntimeError(f"{type(self).__name__} is not deployed")
        return self.chain


class Chain:
    """In-process chain with accounts, a block clock and atomic transactions.

    Args:
        chain_id: Chain id reported to contracts.
        timestamp: Initial block timestamp (defaults to wall clock time).
    """

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID, timestamp: int | None = None):
        self.chain_id = chain_id
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        self.block_number = 0
        self.logs: list[Event] = []

        self._native: dict[str, int] = defaultdict(int)
        self._nonces: dict[str, int] = defaultdict(int)
        self._contracts: dict[str, Contract] = {}
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)

        self._depth = 0
        self._pending: list[Event] = []

    # ========================================================================
    # Accounts
    # ========================================================================

    def signers(self, count: int = 10, balance: int = DEFAULT_SIGNER_BALANCE) -> list[str]:
        """Deterministic funded accounts, like a development node exposes.

        The same index always yields the same address, so repeated calls
        return the same accounts (funded only once).
        """
        addresses = []
        for i in range(count):
            account = Account.from_key(keccak(text=f"diamondpay-signer-{i}"))
            address = account.address
            if address not in self._nonces:
                self._native[address] += balance
                self._nonces[address] = 0
            addresses.append(address)
        return addresses

    def balance_of(self, address: str) -> int:
        """Native balance of an account or contract."""
        return self._native.get(normalize_address(address), 0)

    def fund(self, address: str, amount: int) -> None:
        self._native[normalize_address(address)] += amount

    def transfer_native(self, sender: str, recipient: str, amount: int) -> None:
        """Move native balance between accounts.

        Raises:
            EconomicError: If the sender cannot cover the amount.
        """
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        if amount < 0:
            raise ValueError("Negative native transfer")
        if self._native.get(sender, 0) < amount:
            raise EconomicError("insufficient funds for transfer")
        self._native[sender] -= amount
        self._native[recipient] += amount

    # ========================================================================
    # Contracts
    # ========================================================================

    def deploy(self, contract: Contract, deployer: str) -> str:
        """Deploy a contract and return its address.

        Addresses derive from the deployer and its nonce, so a given
        deployment order always produces the same addresses.
        """
        deployer = normalize_address(deployer)
        nonce = self._nonces[deployer]
        self._nonces[deployer] = nonce + 1
        address = to_checksum_address(
            keccak(to_bytes(hexstr=deployer) + nonce.to_bytes(32, "big"))[12:]
        )
        with self.transaction():
            contract.address = address
            contract.chain = self
            self._contracts[address] = contract
            contract.on_deploy(deployer)
        logger.debug("Deployed %s at %s", type(contract).__name__, address)
        return address

    def get_code(self, address: str) -> bytes:
        contract = self._contracts.get(normalize_address(address))
        return contract.code() if contract is not None else b""

    def contract_at(self, address: str) -> Contract | None:
        return self._contracts.get(normalize_address(address))

    # ========================================================================
    # Clock
    # ========================================================================

    @property
    def now(self) -> int:
        """Timestamp of the block being built."""
        return self.timestamp

    def advance(self, seconds: int = 0, days: int = 0) -> int:
        """Move the clock forward and return the new timestamp."""
        delta = seconds + days * SECONDS_PER_DAY
        if delta < 0:
            raise ValueError("Cannot move the clock backwards")
        self.timestamp += delta
        return self.timestamp

    def mine(self) -> int:
        """Close an empty block."""
        self.block_number += 1
        return self.block_number

    # ========================================================================
    # Transactions
    # ========================================================================

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run a block of state changes atomically.

        Nested transactions join the outermost one: only the outermost
        transaction snapshots, commits or rolls back.
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield
        except BaseException as e:
            self._restore(snapshot)
            self._pending.clear()
            logger.debug("Transaction reverted: %s", e)
            raise
        finally:
            self._depth = 0

        self.block_number += 1
        committed, self._pending = self._pending, []
        for event in committed:
            event.block_number = self.block_number
            self.logs.append(event)
        for event in committed:
            self._notify(event)

    def emit(self, address: str | None, event: Event) -> None:
        event.address = address
        if self._depth > 0:
            self._pending.append(event)
            return
        self.block_number += 1
        event.block_number = self.block_number
        self.logs.append(event)
        self._notify(event)

    def _snapshot(self) -> dict[str, Any]:
        return {
            "native": dict(self._native),
            "nonces": dict(self._nonces),
            "contracts": dict(self._contracts),
            "states": {addr: copy.deepcopy(c.state) for addr, c in self._contracts.items()},
        }

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._native = defaultdict(int, snapshot["native"])
        self._nonces = defaultdict(int, snapshot["nonces"])
        self._contracts = snapshot["contracts"]
        for addr, state in snapshot["states"].items():
            self._contracts[addr].state = state

    # ========================================================================
    # Events
    # ========================================================================

    def on(self, event_name: str, listener: EventListener) -> Chain:
        """Subscribe to committed events by name ("*" for all)."""
        self._listeners[event_name].append(listener)
        return self

    def off(self, event_name: str, listener: EventListener) -> None:
        if listener in self._listeners.get(event_name, []):
            self._listeners[event_name].remove(listener)

    def get_logs(self, event_name: str | None = None, address: str | None = None) -> list[Event]:
        """Committed events, optionally filtered by name and emitter."""
        logs = self.logs
        if event_name is not None:
            logs = [e for e in logs if e.name == event_name]
        if address is not None:
            address = normalize_address(address)
            logs = [e for e in logs if e.address == address]
        return list(logs)

    def _notify(self, event: Event) -> None:
        for listener in [*self._listeners.get(event.name, []), *self._listeners.get("*", [])]:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed for %s", event.name)
