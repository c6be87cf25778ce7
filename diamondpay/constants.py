"""Constants shared by the diamond, its facets and the tooling around it."""

from enum import IntEnum

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Native token is addressed with the zero address in the payment ledgers
NATIVE_TOKEN = ZERO_ADDRESS

SECONDS_PER_DAY = 86400

# Initializer excluded from selector tables
INIT_SIGNATURE = "init(bytes)"

# Called when a cut names an initializer without calldata
DEFAULT_INIT_SIGNATURE = "init()"

DIAMOND_CUT_SIGNATURE = "diamondCut((address,uint8,bytes4[])[],address,bytes)"


class FacetCutAction(IntEnum):
    ADD = 0
    REPLACE = 1
    REMOVE = 2


class TokenType(IntEnum):
    NATIVE = 0
    ERC20 = 1


# ERC-165 interface ids registered by DiamondInit
INTERFACE_ID_ERC165 = "0x01ffc9a7"
INTERFACE_ID_DIAMOND_CUT = "0x1f931c1c"
INTERFACE_ID_DIAMOND_LOUPE = "0x48e2b093"
INTERFACE_ID_ERC173 = "0x7f5828d0"

# Subscription plan bounds (days)
MIN_PLAN_DURATION = 7
MAX_PLAN_DURATION = 365

# Default early-charge grace for recurring charges (days)
DEFAULT_CHARGE_GRACE_DAYS = 0

# Protocol fee is a whole percentage of each charge
PROTOCOL_FEE_SCALE = 100
MAX_PROTOCOL_FEE = 100

# Native spot payments accept up to this much overpayment (percent of amount)
DEFAULT_NATIVE_OVERAGE_PERCENT = 10

DEFAULT_PAYMENT_TYPE = "transfer"

# Revert reasons
ERR_NOT_CONTRACT_OWNER = "LibDiamond: Must be contract owner"
ERR_FUNCTION_NOT_FOUND = "Diamond: Function does not exist"
ERR_NO_SELECTORS = "LibDiamondCut: No selectors in facet to cut"
ERR_ADD_ZERO_ADDRESS = "LibDiamondCut: Add facet can't be address(0)"
ERR_ADD_EXISTING = "LibDiamondCut: Can't add function that already exists"
ERR_REPLACE_ZERO_ADDRESS = "LibDiamondCut: Replace facet can't be address(0)"
ERR_REPLACE_SAME = "LibDiamondCut: Can't replace function with same function"
ERR_REPLACE_MISSING = "LibDiamondCut: Can't replace function that doesn't exist"
ERR_REMOVE_NON_ZERO = "LibDiamondCut: Remove facet address must be address(0)"
ERR_REMOVE_MISSING = "LibDiamondCut: Can't remove function that doesn't exist"
ERR_IMMUTABLE_FUNCTION = "LibDiamondCut: Can't change immutable function"
ERR_NO_CODE = "LibDiamondCut: facet has no code"
ERR_INIT_NO_CODE = "LibDiamondCut: _init address has no code"
ERR_INIT_CALLDATA = "LibDiamondCut: _init is address(0) but _calldata is not empty"
ERR_INIT_REVERTED = "LibDiamondCut: _init function reverted"
ERR_INCORRECT_ACTION = "LibDiamondCut: Incorrect FacetCutAction"
ERR_NEW_OWNER_ZERO = "Ownership: new owner is the zero address"

ERR_NOT_SUBSCRIPTION_OWNER = "Subscription: caller is not the plan owner"
ERR_PAUSED_OWNER = "Subscription: plan owner is paused"
ERR_BLOCKED_OWNER = "Subscription: plan owner is blacklisted"
ERR_PLAN_NOT_FOUND = "Subscription: plan not found"
ERR_PLAN_INACTIVE = "Plan: inactive"
ERR_INVALID_DURATION = "Subscription: invalid duration"
ERR_INVALID_INTERVAL = "Subscription: invalid payment interval"
ERR_INVALID_FEE = "Subscription: invalid fee"
ERR_ALREADY_SUBSCRIBED = "Plan: already subscribed"
ERR_NOT_SUBSCRIBED = "Plan: not subscribed"
ERR_WRONG_PAYMENT_TOKEN = "Plan: wrong payment token"
ERR_DUPLICATE_PAYMENT = "Duplicate subscription payment"
ERR_RENEWAL_REQUIRED = "Plan Renewal required"
ERR_ZERO_ADDRESS_TRANSFER = "Transfer to the zero address"
ERR_CONTRACT_BALANCE = "Insufficient balance in the contract"
ERR_CONTRACT_TOKEN_BALANCE = "Insufficient token balance in the contract"

ERR_INSUFFICIENT_ALLOWANCE = "Insufficient allowance"
ERR_INSUFFICIENT_TOKEN_BALANCE = "Insufficient token balance"
ERR_INSUFFICIENT_TOKENS_SENT = "Insufficient tokens sent"
ERR_EXCESS_TOKENS_SENT = "Excess tokens sent"
ERR_NO_ETH_SENT = "No eth was sent"
ERR_SAME_ACCOUNT = "Same account transfer is not allowed"
ERR_INVALID_AMOUNT = "Amount must be greater than zero"
ERR_INVALID_TOKEN_TYPE = "Unsupported token type"
ERR_SOURCE_CHAIN_NOT_SET = "Source chain address not set"
ERR_WRONG_TOKEN_CONTRACT = "Wrong token contract"

# ERC-20 reasons (OpenZeppelin wording)
ERR_ERC20_BALANCE = "ERC20: transfer amount exceeds balance"
ERR_ERC20_ALLOWANCE = "ERC20: insufficient allowance"
ERR_ERC20_ZERO_ADDRESS = "ERC20: transfer to the zero address"
