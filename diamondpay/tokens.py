"""Token and bridge contracts used alongside the diamond on a local chain."""

import logging
from dataclasses import dataclass, field

from . import constants as c
from .chain import Contract
from .errors import EconomicError, Revert
from .schemas import Approval, TokenSent, Transfer
from .utils import is_zero_address, normalize_address

logger = logging.getLogger(__name__)


@dataclass
class TokenState:
    total_supply: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[tuple[str, str], int] = field(default_factory=dict)


class ERC20Token(Contract):
    """Mintable ERC-20 token.

    Only balance, allowance and transfer semantics are modelled. Mutating
    methods take the calling account explicitly, as ``msg.sender``.
    """

    def __init__(self, name: str = "MyTestERC20", symbol: str = "MTE", decimals: int = 18):
        super().__init__()
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.state = TokenState()

    def balance_of(self, account: str) -> int:
        return self.state.balances.get(normalize_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.state.allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    @property
    def total_supply(self) -> int:
        return self.state.total_supply

    def mint(self, to: str, amount: int) -> None:
        chain = self._require_chain()
        with chain.transaction():
            to = normalize_address(to)
            self.state.balances[to] = self.balance_of(to) + amount
            self.state.total_supply += amount
            self.emit(Transfer(sender=c.ZERO_ADDRESS, recipient=to, value=amount))

    def approve(self, caller: str, spender: str, amount: int) -> bool:
        chain = self._require_chain()
        with chain.transaction():
            caller = normalize_address(caller)
            spender = normalize_address(spender)
            self.state.allowances[(caller, spender)] = amount
            self.emit(Approval(owner=caller, spender=spender, value=amount))
        return True

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        chain = self._require_chain()
        with chain.transaction():
            self._move(normalize_address(caller), to, amount)
        return True

    def transfer_from(self, caller: str, owner: str, to: str, amount: int) -> bool:
        chain = self._require_chain()
        with chain.transaction():
            owner = normalize_address(owner)
            caller = normalize_address(caller)
            allowed = self.allowance(owner, caller)
            if allowed < amount:
                raise EconomicError(c.ERR_ERC20_ALLOWANCE)
            self.state.allowances[(owner, caller)] = allowed - amount
            self._move(owner, to, amount)
        return True

    def _move(self, sender: str, to: str, amount: int) -> None:
        if is_zero_address(to):
            raise Revert(c.ERR_ERC20_ZERO_ADDRESS)
        to = normalize_address(to)
        balance = self.balance_of(sender)
        if balance < amount:
            raise EconomicError(c.ERR_ERC20_BALANCE)
        self.state.balances[sender] = balance - amount
        self.state.balances[to] = self.balance_of(to) + amount
        self.emit(Transfer(sender=sender, recipient=to, value=amount))


@dataclass
class GatewayRequest:
    sender: str
    destination_chain: str
    destination_address: str
    symbol: str
    amount: int
    token: str


@dataclass
class GatewayState:
    requests: list[GatewayRequest] = field(default_factory=list)


class BridgeGateway(Contract):
    """Cross-chain gateway that locks approved tokens for delivery elsewhere.

    Tokens are registered per symbol; ``send_token`` pulls the caller's
    approved amount and records the outbound request.
    """

    def __init__(self):
        super().__init__()
        self.state = GatewayState()
        self._tokens: dict[str, str] = {}

    def register_token(self, symbol: str, token: str) -> None:
        self._tokens[symbol] = normalize_address(token)

    def token_address(self, symbol: str) -> str | None:
        return self._tokens.get(symbol)

    @property
    def requests(self) -> list[GatewayRequest]:
        return list(self.state.requests)

    def send_token(
        self,
        caller: str,
        destination_chain: str,
        destination_address: str,
        symbol: str,
        amount: int,
        token: str | None = None,
    ) -> None:
        chain = self._require_chain()
        with chain.transaction():
            token = token or self._tokens.get(symbol)
            if token is None:
                raise Revert(f"Gateway: unknown token symbol {symbol}")
            contract = chain.contract_at(token)
            if not isinstance(contract, ERC20Token):
                raise Revert(f"Gateway: {token} is not a token")
            contract.transfer_from(self.address, caller, self.address, amount)
            request = GatewayRequest(
                sender=normalize_address(caller),
                destination_chain=destination_chain,
                destination_address=destination_address,
                symbol=symbol,
                amount=amount,
                token=normalize_address(token),
            )
            self.state.requests.append(request)
            self.emit(
                TokenSent(
                    sender=request.sender,
                    destination_chain=destination_chain,
                    destination_address=destination_address,
                    symbol=symbol,
                    amount=amount,
                )
            )
            logger.debug("Gateway locked %s %s for %s", amount, symbol, destination_chain)
