"""Diamond cut processing and routing tests."""

import pytest

from diamondpay import constants as c
from diamondpay.abi import encode_call
from diamondpay.errors import (
    FunctionNotFound,
    InitializationFailed,
    InvalidFacetCut,
    NotOwner,
    Revert,
    SelectorAlreadyRegistered,
    SelectorNotRegistered,
)
from diamondpay.facets import Facet
from diamondpay.schemas import FacetCut
from diamondpay.selectors import external, get_selector, get_selectors

ADD = c.FacetCutAction.ADD
REPLACE = c.FacetCutAction.REPLACE
REMOVE = c.FacetCutAction.REMOVE


class SampleFacet(Facet):
    @external("test1Func1()", view=True)
    def test1_func1(self, ctx):
        return "v1"

    @external("test1Func2()", view=True)
    def test1_func2(self, ctx):
        return ctx.sender

    @external("test1Func3(uint256)")
    def test1_func3(self, ctx, value):
        ctx.storage.namespace("test1", dict)["value"] = value
        return value


class SampleFacetV2(SampleFacet):
    @external("test1Func1()", view=True)
    def test1_func1(self, ctx):
        return "v2"


class RecordingInit(Facet):
    @external("setValue(uint256)")
    def set_value(self, ctx, value):
        ctx.storage.namespace("init", dict)["value"] = value


class BytesInit(Facet):
    @external("init(bytes)")
    def init(self, ctx, data):
        ctx.storage.namespace("init", dict)["data"] = data


class FailingInit(Facet):
    @external("init()")
    def init(self, ctx):
        raise Revert("init failed on purpose")


@pytest.fixture
def test1_facet(chain, owner):
    facet = SampleFacet()
    chain.deploy(facet, owner)
    return facet


def add_cut(facet, selectors=None):
    return FacetCut(facet_address=facet.address, action=ADD, function_selectors=selectors or get_selectors(facet))


# ============================================================================
# DEPLOYMENT
# ============================================================================


class TestDeployment:
    def test_three_facets_registered(self, deployment, loupe):
        assert loupe.facet_addresses() == deployment.facet_addresses

    def test_cut_facet_selectors(self, deployment, loupe):
        assert loupe.facet_function_selectors(deployment.diamond_cut_facet.address) == ["0x1f931c1c"]

    def test_loupe_and_ownership_selectors(self, deployment, loupe):
        assert loupe.facet_function_selectors(deployment.diamond_loupe_facet.address) == get_selectors(
            deployment.diamond_loupe_facet
        )
        assert loupe.facet_function_selectors(deployment.ownership_facet.address) == get_selectors(
            deployment.ownership_facet
        )

    def test_every_selector_routes_back_to_its_facet(self, loupe):
        for facet in loupe.facets():
            for selector in facet.function_selectors:
                assert loupe.facet_address(selector) == facet.facet_address

    @pytest.mark.parametrize(
        "interface_id",
        [c.INTERFACE_ID_ERC165, c.INTERFACE_ID_DIAMOND_CUT, c.INTERFACE_ID_DIAMOND_LOUPE, c.INTERFACE_ID_ERC173],
    )
    def test_supported_interfaces(self, loupe, interface_id):
        assert loupe.supports_interface(interface_id) is True

    def test_unknown_interface(self, loupe):
        assert loupe.supports_interface("0xdeadbeef") is False

    def test_deployment_emits_cut_events(self, chain, deployment):
        events = chain.get_logs("DiamondCut", deployment.address)
        assert len(events) == 2
        assert events[0].init == c.ZERO_ADDRESS
        assert events[1].init == deployment.diamond_init.address


# ============================================================================
# ADD / REPLACE / REMOVE
# ============================================================================


class TestAdd:
    def test_add_and_call(self, diamond, cut, loupe, owner, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)

        assert loupe.facet_addresses()[-1] == test1_facet.address
        assert loupe.facet_function_selectors(test1_facet.address) == get_selectors(test1_facet)
        assert diamond.call(owner, "test1Func1()") == "v1"
        assert diamond.as_facet(SampleFacet, owner).test1_func2() == owner

    def test_facet_code_writes_diamond_storage(self, diamond, cut, owner, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        diamond.call(owner, "test1Func3(uint256)", 7)
        assert diamond.state.namespaces["test1"]["value"] == 7
        assert test1_facet.state is None

    def test_add_existing_selector(self, cut, loupe, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        before = loupe.facets()
        with pytest.raises(SelectorAlreadyRegistered) as exc:
            cut.diamond_cut([add_cut(test1_facet, [get_selector("test1Func1()")])], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_ADD_EXISTING
        assert loupe.facets() == before

    def test_add_zero_address(self, cut):
        entry = FacetCut(facet_address=c.ZERO_ADDRESS, action=ADD, function_selectors=["0x12345678"])
        with pytest.raises(InvalidFacetCut, match="address\\(0\\)"):
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)

    def test_add_facet_without_code(self, cut, other):
        entry = FacetCut(facet_address=other, action=ADD, function_selectors=["0x12345678"])
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_NO_CODE

    def test_empty_selector_list(self, cut, test1_facet):
        entry = FacetCut(facet_address=test1_facet.address, action=ADD, function_selectors=[])
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_NO_SELECTORS

    def test_non_owner_cannot_cut(self, cut, other, test1_facet):
        with pytest.raises(NotOwner) as exc:
            cut.connect(other).diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_NOT_CONTRACT_OWNER

    def test_batch_is_atomic(self, chain, cut, loupe, test1_facet):
        before = loupe.facet_addresses()
        events_before = len(chain.logs)
        bad = FacetCut(facet_address=c.ZERO_ADDRESS, action=ADD, function_selectors=["0x12345678"])
        with pytest.raises(InvalidFacetCut):
            cut.diamond_cut([add_cut(test1_facet), bad], c.ZERO_ADDRESS, None)

        assert loupe.facet_addresses() == before
        assert loupe.facet_address(get_selector("test1Func1()")) == c.ZERO_ADDRESS
        assert len(chain.logs) == events_before


class TestReplace:
    def test_replace_prunes_old_facet(self, chain, diamond, cut, loupe, owner, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        v2 = SampleFacetV2()
        chain.deploy(v2, owner)

        entry = FacetCut(facet_address=v2.address, action=REPLACE, function_selectors=get_selectors(test1_facet))
        cut.diamond_cut([entry], c.ZERO_ADDRESS, None)

        assert diamond.call(owner, "test1Func1()") == "v2"
        assert test1_facet.address not in loupe.facet_addresses()
        assert loupe.facet_function_selectors(test1_facet.address) == []
        assert loupe.facet_function_selectors(v2.address) == get_selectors(test1_facet)

    def test_partial_replace_keeps_old_facet(self, chain, diamond, cut, loupe, owner, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        v2 = SampleFacetV2()
        chain.deploy(v2, owner)

        selector = get_selector("test1Func1()")
        cut.diamond_cut(
            [FacetCut(facet_address=v2.address, action=REPLACE, function_selectors=[selector])],
            c.ZERO_ADDRESS,
            None,
        )
        assert loupe.facet_address(selector) == v2.address
        assert selector not in loupe.facet_function_selectors(test1_facet.address)
        assert len(loupe.facet_function_selectors(test1_facet.address)) == 2

    def test_replace_with_same_facet(self, cut, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        entry = FacetCut(facet_address=test1_facet.address, action=REPLACE, function_selectors=[get_selector("test1Func1()")])
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_REPLACE_SAME

    def test_replace_missing_selector(self, cut, test1_facet):
        entry = FacetCut(facet_address=test1_facet.address, action=REPLACE, function_selectors=["0x12345678"])
        with pytest.raises(SelectorNotRegistered):
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)


class TestRemove:
    def test_remove_requires_zero_address(self, cut, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        entry = FacetCut(facet_address=test1_facet.address, action=REMOVE, function_selectors=get_selectors(test1_facet))
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_REMOVE_NON_ZERO

    def test_remove_missing_selector(self, cut):
        entry = FacetCut(facet_address=c.ZERO_ADDRESS, action=REMOVE, function_selectors=["0x12345678"])
        with pytest.raises(SelectorNotRegistered) as exc:
            cut.diamond_cut([entry], c.ZERO_ADDRESS, None)
        assert exc.value.reason == c.ERR_REMOVE_MISSING

    def test_removed_function_is_not_found(self, diamond, cut, owner, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        entry = FacetCut(
            facet_address=c.ZERO_ADDRESS, action=REMOVE, function_selectors=[get_selector("test1Func2()")]
        )
        cut.diamond_cut([entry], c.ZERO_ADDRESS, None)

        with pytest.raises(FunctionNotFound) as exc:
            diamond.call(owner, "test1Func2()")
        assert exc.value.selector == get_selector("test1Func2()")
        assert diamond.call(owner, "test1Func1()") == "v1"

    def test_remove_swaps_last_selector_in(self, cut, loupe, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        f1, f2, f3 = get_selectors(test1_facet)
        cut.diamond_cut(
            [FacetCut(facet_address=c.ZERO_ADDRESS, action=REMOVE, function_selectors=[f1])], c.ZERO_ADDRESS, None
        )
        assert loupe.facet_function_selectors(test1_facet.address) == [f3, f2]

    def test_remove_all_but_cut_and_facets(self, deployment, cut, loupe, test1_facet):
        cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, None)
        keep = {get_selector(c.DIAMOND_CUT_SIGNATURE), get_selector("facets()")}
        selectors = [s for f in loupe.facets() for s in f.function_selectors if s not in keep]

        cut.diamond_cut(
            [FacetCut(facet_address=c.ZERO_ADDRESS, action=REMOVE, function_selectors=selectors)],
            c.ZERO_ADDRESS,
            None,
        )

        facets = loupe.facets()
        assert [f.facet_address for f in facets] == [
            deployment.diamond_cut_facet.address,
            deployment.diamond_loupe_facet.address,
        ]
        assert facets[0].function_selectors == ["0x1f931c1c"]
        assert facets[1].function_selectors == ["0x7a0ed627"]

    def test_immutable_functions(self, diamond, cut):
        selector = "0xabcdef01"
        cut.diamond_cut(
            [FacetCut(facet_address=diamond.address, action=ADD, function_selectors=[selector])],
            c.ZERO_ADDRESS,
            None,
        )
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut(
                [FacetCut(facet_address=c.ZERO_ADDRESS, action=REMOVE, function_selectors=[selector])],
                c.ZERO_ADDRESS,
                None,
            )
        assert exc.value.reason == c.ERR_IMMUTABLE_FUNCTION


# ============================================================================
# INITIALIZER
# ============================================================================


class TestInitializer:
    def test_init_with_encoded_calldata(self, chain, diamond, cut, owner, test1_facet):
        init = RecordingInit()
        chain.deploy(init, owner)
        cut.diamond_cut([add_cut(test1_facet)], init.address, encode_call("setValue(uint256)", 42))
        assert diamond.state.namespaces["init"]["value"] == 42
        assert init.state is None

    def test_init_with_signature_and_args(self, chain, diamond, cut, owner, test1_facet):
        init = RecordingInit()
        chain.deploy(init, owner)
        cut.diamond_cut([add_cut(test1_facet)], init.address, ("setValue(uint256)", (5,)))
        assert diamond.state.namespaces["init"]["value"] == 5

    def test_init_without_calldata_calls_init(self, diamond, deployment, cut, loupe, test1_facet):
        diamond.state.supported_interfaces.clear()
        cut.diamond_cut([add_cut(test1_facet)], deployment.diamond_init.address, None)

        assert loupe.supports_interface(c.INTERFACE_ID_DIAMOND_LOUPE)
        assert loupe.facet_address(get_selector("test1Func1()")) == test1_facet.address

    def test_init_bytes_only_initializer(self, chain, diamond, cut, owner, test1_facet):
        init = BytesInit()
        chain.deploy(init, owner)
        cut.diamond_cut([add_cut(test1_facet)], init.address, b"")
        assert diamond.state.namespaces["init"]["data"] == b""

    def test_init_without_initializer(self, chain, cut, owner, test1_facet):
        init = RecordingInit()
        chain.deploy(init, owner)
        with pytest.raises(InitializationFailed):
            cut.diamond_cut([add_cut(test1_facet)], init.address, None)

    def test_failing_init_reverts_cut(self, chain, cut, loupe, owner, test1_facet):
        init = FailingInit()
        chain.deploy(init, owner)
        with pytest.raises(InitializationFailed) as exc:
            cut.diamond_cut([add_cut(test1_facet)], init.address, ("init()", ()))

        assert "init failed on purpose" in exc.value.reason
        assert isinstance(exc.value.cause, Revert)
        assert loupe.facet_address(get_selector("test1Func1()")) == c.ZERO_ADDRESS

    def test_init_without_code(self, cut, other, test1_facet):
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([add_cut(test1_facet)], other, ("init()", ()))
        assert exc.value.reason == c.ERR_INIT_NO_CODE

    def test_calldata_without_init(self, cut, test1_facet):
        with pytest.raises(InvalidFacetCut) as exc:
            cut.diamond_cut([add_cut(test1_facet)], c.ZERO_ADDRESS, b"\x01")
        assert exc.value.reason == c.ERR_INIT_CALLDATA


# ============================================================================
# DISPATCH
# ============================================================================


class TestDispatch:
    def test_unknown_selector(self, diamond, owner):
        with pytest.raises(FunctionNotFound):
            diamond.call(owner, "0x12345678")

    def test_call_by_selector(self, diamond, owner):
        assert diamond.call(owner, "0x8da5cb5b") == owner

    def test_call_data(self, diamond, owner):
        assert diamond.call_data(owner, encode_call("owner()")) == owner

    def test_value_to_non_payable(self, chain, diamond, owner):
        balance = chain.balance_of(owner)
        with pytest.raises(Revert, match="not payable"):
            diamond.call(owner, "owner()", value=1)
        assert chain.balance_of(owner) == balance
        assert chain.balance_of(diamond.address) == 0

    def test_receive(self, chain, diamond, owner):
        diamond.receive(owner, 1000)
        assert chain.balance_of(diamond.address) == 1000

    def test_facet_address_helper(self, deployment, diamond):
        assert diamond.facet_address("owner()") == deployment.ownership_facet.address
        assert diamond.facet_address("0x12345678") == c.ZERO_ADDRESS

    def test_handle_unknown_attribute(self, loupe):
        with pytest.raises(AttributeError):
            loupe.not_a_function()
