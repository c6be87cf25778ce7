"""The diamond proxy: selector routing table, cut processing and dispatch.

A :class:`Diamond` owns one :class:`DiamondStorage`. Facets are stateless
contracts whose external functions are bound to the diamond by selector;
dispatching a call runs the facet's code against the diamond's storage, the
same way ``delegatecall`` keeps the proxy as execution context.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from . import constants as c
from .abi import decode_call
from .chain import Chain, Contract
from .errors import (
    FunctionNotFound,
    InitializationFailed,
    InvalidFacetCut,
    NotOwner,
    Revert,
    SelectorAlreadyRegistered,
    SelectorNotRegistered,
    WrongTokenContract,
)
from .schemas import DiamondCutEvent, Event, FacetCut
from .selectors import ExternalFunction, external_functions
from .utils import is_selector, is_zero_address, normalize_address, normalize_selector, same_address, selector_of

if TYPE_CHECKING:
    from .tokens import ERC20Token

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Storage
# ============================================================================


@dataclass
class DiamondStorage:
    """Persistent state of a diamond.

    Attributes:
        contract_owner: Address allowed to cut and administer the diamond.
        selector_to_facet: Selector to facet address routing table.
        facet_selectors: Facet address to its ordered selectors.
        facet_addresses: Facets in registration order.
        supported_interfaces: ERC-165 interface id flags.
        namespaces: Per-facet application storage, keyed by namespace.
    """

    contract_owner: str = c.ZERO_ADDRESS
    selector_to_facet: dict[str, str] = field(default_factory=dict)
    facet_selectors: dict[str, list[str]] = field(default_factory=dict)
    facet_addresses: list[str] = field(default_factory=list)
    supported_interfaces: dict[str, bool] = field(default_factory=dict)
    namespaces: dict[str, Any] = field(default_factory=dict)

    def namespace(self, key: str, factory: Callable[[], T]) -> T:
        """Application storage for a facet, created on first use."""
        if key not in self.namespaces:
            self.namespaces[key] = factory()
        return self.namespaces[key]


def enforce_is_contract_owner(ds: DiamondStorage, sender: str) -> None:
    if not same_address(sender, ds.contract_owner):
        raise NotOwner(caller=sender, owner=ds.contract_owner)


def set_contract_owner(ds: DiamondStorage, new_owner: str) -> str:
    """Replace the owner and return the previous one."""
    previous = ds.contract_owner
    ds.contract_owner = normalize_address(new_owner)
    return previous


# ============================================================================
# Cut processing
# ============================================================================


def diamond_cut(
    ctx: CallContext,
    cuts: Iterable[FacetCut | dict],
    init: str = c.ZERO_ADDRESS,
    calldata: Any = None,
) -> None:
    """Apply a batch of facet cuts and run the optional initializer.

    Must run inside a chain transaction: a failing entry or initializer
    raises and the caller's transaction discards every change.

    Raises:
        InvalidFacetCut: If an entry is invalid for its action.
        InitializationFailed: If the initializer reverts.
    """
    ds = ctx.storage
    cuts = [cut if isinstance(cut, FacetCut) else FacetCut.model_validate(cut) for cut in cuts]

    for cut in cuts:
        if not cut.function_selectors:
            raise InvalidFacetCut(c.ERR_NO_SELECTORS)
        if cut.action == c.FacetCutAction.ADD:
            add_functions(ctx, cut.facet_address, cut.function_selectors)
        elif cut.action == c.FacetCutAction.REPLACE:
            replace_functions(ctx, cut.facet_address, cut.function_selectors)
        elif cut.action == c.FacetCutAction.REMOVE:
            remove_functions(ctx, cut.facet_address, cut.function_selectors)
        else:
            raise InvalidFacetCut(c.ERR_INCORRECT_ACTION)

    init = normalize_address(init or c.ZERO_ADDRESS)
    ctx.emit(DiamondCutEvent(diamond_cut=cuts, init=init, calldata=calldata))
    initialize_diamond_cut(ctx, init, calldata)
    logger.info(
        "Diamond cut applied to %s: %d entries, %d facets registered",
        ctx.this,
        len(cuts),
        len(ds.facet_addresses),
    )


def add_functions(ctx: CallContext, facet_address: str, selectors: list[str]) -> None:
    ds = ctx.storage
    if is_zero_address(facet_address):
        raise InvalidFacetCut(c.ERR_ADD_ZERO_ADDRESS)
    _enforce_has_code(ctx.chain, facet_address, c.ERR_NO_CODE)
    for selector in selectors:
        if selector in ds.selector_to_facet:
            raise SelectorAlreadyRegistered(selector)
        _add_function(ds, facet_address, selector)
        logger.debug("Added %s -> %s", selector, facet_address)


def replace_functions(ctx: CallContext, facet_address: str, selectors: list[str]) -> None:
    ds = ctx.storage
    if is_zero_address(facet_address):
        raise InvalidFacetCut(c.ERR_REPLACE_ZERO_ADDRESS)
    _enforce_has_code(ctx.chain, facet_address, c.ERR_NO_CODE)
    for selector in selectors:
        old_facet = ds.selector_to_facet.get(selector)
        if old_facet is None:
            raise SelectorNotRegistered(selector, c.ERR_REPLACE_MISSING)
        if same_address(old_facet, ctx.this):
            raise InvalidFacetCut(c.ERR_IMMUTABLE_FUNCTION)
        if same_address(old_facet, facet_address):
            raise InvalidFacetCut(c.ERR_REPLACE_SAME)
        _remove_function(ds, old_facet, selector)
        _add_function(ds, facet_address, selector)
        logger.debug("Replaced %s: %s -> %s", selector, old_facet, facet_address)


def remove_functions(ctx: CallContext, facet_address: str, selectors: list[str]) -> None:
    ds = ctx.storage
    if not is_zero_address(facet_address):
        raise InvalidFacetCut(c.ERR_REMOVE_NON_ZERO)
    for selector in selectors:
        old_facet = ds.selector_to_facet.get(selector)
        if old_facet is None:
            raise SelectorNotRegistered(selector, c.ERR_REMOVE_MISSING)
        if same_address(old_facet, ctx.this):
            raise InvalidFacetCut(c.ERR_IMMUTABLE_FUNCTION)
        _remove_function(ds, old_facet, selector)
        logger.debug("Removed %s from %s", selector, old_facet)


def initialize_diamond_cut(ctx: CallContext, init: str, calldata: Any) -> None:
    """Run ``init`` with ``calldata`` in the diamond's storage context.

    ``calldata`` is either ABI-encoded bytes or a ``(signature, args)`` pair.
    """
    if is_zero_address(init):
        if calldata:
            raise InvalidFacetCut(c.ERR_INIT_CALLDATA)
        return
    _enforce_has_code(ctx.chain, init, c.ERR_INIT_NO_CODE)
    target = ctx.chain.contract_at(init)

    try:
        with ctx.chain.transaction():
            if calldata is None or calldata == b"" or calldata == "0x":
                _run_default_initializer(ctx, target)
            elif isinstance(calldata, (bytes, bytearray)):
                method, entry = resolve_function(target, normalize_selector(calldata[:4]))
                method(ctx, *decode_call(entry.signature, bytes(calldata)))
            else:
                signature, args = calldata
                method, _ = resolve_function(target, signature)
                method(ctx, *args)
    except Revert as e:
        raise InitializationFailed(e) from e


def _run_default_initializer(ctx: CallContext, target: Contract) -> None:
    """Call ``init()`` on ``target``, or ``init(bytes)`` with empty data if that is all it has."""
    signatures = {entry.signature for _, entry in external_functions(target)}
    if c.DEFAULT_INIT_SIGNATURE in signatures or c.INIT_SIGNATURE not in signatures:
        method, _ = resolve_function(target, c.DEFAULT_INIT_SIGNATURE)
        method(ctx)
    else:
        method, _ = resolve_function(target, c.INIT_SIGNATURE)
        method(ctx, b"")


def _enforce_has_code(chain: Chain, address: str, reason: str) -> None:
    if not chain.get_code(address):
        raise InvalidFacetCut(reason)


def _add_function(ds: DiamondStorage, facet_address: str, selector: str) -> None:
    facet_address = normalize_address(facet_address)
    if facet_address not in ds.facet_selectors:
        ds.facet_selectors[facet_address] = []
        ds.facet_addresses.append(facet_address)
    ds.facet_selectors[facet_address].append(selector)
    ds.selector_to_facet[selector] = facet_address


def _remove_function(ds: DiamondStorage, facet_address: str, selector: str) -> None:
    selectors = ds.facet_selectors[facet_address]
    # swap the last selector into the removed slot
    position = selectors.index(selector)
    last = selectors.pop()
    if position < len(selectors):
        selectors[position] = last
    del ds.selector_to_facet[selector]

    if not selectors:
        del ds.facet_selectors[facet_address]
        ds.facet_addresses.remove(facet_address)
        logger.debug("Facet %s has no selectors left, pruned", facet_address)


# ============================================================================
# Dispatch
# ============================================================================


def resolve_function(contract: Contract, function: str | bytes) -> tuple[Callable[..., Any], ExternalFunction]:
    """Bound method and ABI entry of a facet for a selector or signature.

    Raises:
        FunctionNotFound: If the contract does not implement it.
    """
    selector = normalize_selector(function) if is_selector(function) else selector_of(function)
    for name, entry in external_functions(contract):
        if entry.selector == selector:
            return getattr(contract, name), entry
    raise FunctionNotFound(selector)


@dataclass
class CallContext:
    """Execution context handed to facet code.

    Attributes:
        chain: Chain executing the call.
        diamond: Proxy whose storage the facet operates on.
        sender: ``msg.sender``.
        value: ``msg.value`` in wei.
    """

    chain: Chain
    diamond: Diamond
    sender: str
    value: int = 0

    @property
    def storage(self) -> DiamondStorage:
        return self.diamond.state

    @property
    def this(self) -> str:
        return self.diamond.address

    @property
    def now(self) -> int:
        return self.chain.now

    def emit(self, event: Event) -> None:
        self.chain.emit(self.this, event)

    def token(self, address: str) -> ERC20Token:
        """ERC-20 contract at ``address``.

        Raises:
            WrongTokenContract: If no token is deployed there.
        """
        from .tokens import ERC20Token

        if is_zero_address(address):
            raise WrongTokenContract()
        contract = self.chain.contract_at(address)
        if not isinstance(contract, ERC20Token):
            raise WrongTokenContract()
        return contract


class Diamond(Contract):
    """EIP-2535 proxy.

    The constructor registers ``diamondCut`` from the given cut facet and sets
    the owner; every other function is attached through cuts.

    Args:
        contract_owner: Initial owner.
        diamond_cut_facet: Address of a deployed DiamondCutFacet.
    """

    def __init__(self, contract_owner: str, diamond_cut_facet: str):
        super().__init__()
        self.state = DiamondStorage()
        self._contract_owner = normalize_address(contract_owner)
        self._diamond_cut_facet = normalize_address(diamond_cut_facet)

    def on_deploy(self, deployer: str) -> None:
        ds = self.state
        set_contract_owner(ds, self._contract_owner)
        ctx = CallContext(self.chain, self, deployer)
        diamond_cut(
            ctx,
            [
                FacetCut(
                    facet_address=self._diamond_cut_facet,
                    action=c.FacetCutAction.ADD,
                    function_selectors=[selector_of(c.DIAMOND_CUT_SIGNATURE)],
                )
            ],
        )

    @property
    def owner(self) -> str:
        return self.state.contract_owner

    def facet_address(self, function: str | bytes) -> str:
        """Facet routed for a selector or signature (zero address if none)."""
        selector = normalize_selector(function) if is_selector(function) else selector_of(function)
        return self.state.selector_to_facet.get(selector, c.ZERO_ADDRESS)

    def call(self, sender: str, function: str | bytes, *args: Any, value: int = 0) -> Any:
        """Dispatch one external call through the routing table.

        Args:
            sender: Calling account (``msg.sender``).
            function: Canonical signature or 4-byte selector.
            *args: Decoded call arguments.
            value: Native value attached to the call.

        Returns:
            Whatever the facet function returns.

        Raises:
            FunctionNotFound: If no facet is registered for the selector.
            Revert: Any revert raised by the facet; state is rolled back.
        """
        chain = self._require_chain()
        selector = normalize_selector(function) if is_selector(function) else selector_of(function)
        sender = normalize_address(sender)

        with chain.transaction():
            facet_address = self.state.selector_to_facet.get(selector)
            if facet_address is None:
                raise FunctionNotFound(selector)
            facet = chain.contract_at(facet_address)
            method, entry = resolve_function(facet, selector)
            if value:
                if not entry.payable:
                    raise Revert(f"{entry.signature} is not payable")
                chain.transfer_native(sender, self.address, value)
            logger.debug("%s -> %s (%s) via %s", sender, entry.signature, selector, facet_address)
            return method(CallContext(chain, self, sender, value), *args)

    def call_data(self, sender: str, data: bytes, value: int = 0) -> Any:
        """Dispatch ABI-encoded calldata."""
        selector = normalize_selector(data[:4])
        facet_address = self.state.selector_to_facet.get(selector)
        if facet_address is None:
            raise FunctionNotFound(selector)
        _, entry = resolve_function(self.chain.contract_at(facet_address), selector)
        return self.call(sender, selector, *decode_call(entry.signature, data), value=value)

    def receive(self, sender: str, value: int) -> None:
        """Plain native transfer to the diamond."""
        chain = self._require_chain()
        with chain.transaction():
            chain.transfer_native(sender, self.address, value)

    def as_facet(self, facet: Any, sender: str) -> FacetHandle:
        """Typed handle calling ``facet``'s functions through this diamond."""
        return FacetHandle(self, facet, sender)


class FacetHandle:
    """Calls a facet's functions through the diamond on behalf of ``sender``.

    Attribute access resolves the facet's snake_case method names, so
    ``handle.create_plan(...)`` dispatches ``createPlan(...)`` by selector.
    """

    def __init__(self, diamond: Diamond, facet: Any, sender: str):
        self._diamond = diamond
        self._facet = facet
        self._sender = normalize_address(sender)
        self._functions = dict(external_functions(facet))

    @property
    def address(self) -> str:
        return self._diamond.address

    @property
    def sender(self) -> str:
        return self._sender

    def connect(self, sender: str) -> FacetHandle:
        """Same handle for another caller."""
        return FacetHandle(self._diamond, self._facet, sender)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        functions = self.__dict__.get("_functions", {})
        if name not in functions:
            raise AttributeError(name)
        entry = functions[name]

        def call(*args: Any, value: int = 0) -> Any:
            return self._diamond.call(self._sender, entry.selector, *args, value=value)

        call.__name__ = name
        call.__doc__ = entry.signature
        return call
