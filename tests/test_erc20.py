import pytest

from chainlab.examples.erc20 import Approval, ERC20Token, Erc20Error, Transfer
from chainlab.traits import Address, Context

_counter = iter(range(1, 250))


def create_account():
    addr = Address(bytes([next(_counter)]) * 20)
    return addr, Context().with_sender(addr).with_gas(100_000)


def test_happy_paths():
    _getafix, gctx = create_account()
    _fulliautomatix, _fctx = create_account()
    caesar, cctx = create_account()
    brutus, bctx = create_account()

    erc20 = ERC20Token(gctx, 1000)

    transfer = erc20.transfer(gctx, caesar, 500)
    assert transfer == Transfer(from_=_getafix, to=caesar, amount=500)
    assert erc20.balance_of(cctx) == 500

    approval = erc20.approve(cctx, brutus, 400)
    assert approval == Approval(sender=caesar, spender=brutus, amount=400)
    assert erc20.balance_of(bctx) == 0

    transfer = erc20.transfer_from(bctx, caesar, brutus, 400)
    assert transfer == Transfer(from_=caesar, to=brutus, amount=400)
    assert erc20.balance_of(bctx) == 400
    assert erc20.balance_of(cctx) == 100
    assert erc20.allowance(cctx, brutus) == 0


def test_transfer_emits_event():
    owner, ctx = create_account()
    other, _ = create_account()
    erc20 = ERC20Token(ctx, 10)
    erc20.transfer(ctx, other, 3)
    assert ctx.events == [Transfer(from_=owner, to=other, amount=3)]


def test_noop_transfer_returns_default():
    owner, ctx = create_account()
    erc20 = ERC20Token(ctx, 10)
    assert erc20.transfer(ctx, owner, 5) == Transfer()
    assert erc20.balance_of(ctx) == 10
    assert ctx.events == []


def test_insufficient_funds():
    poor, pctx = create_account()
    _, octx = create_account()
    other, _ = create_account()
    erc20 = ERC20Token(octx, 10)
    with pytest.raises(Erc20Error) as excinfo:
        erc20.transfer(pctx, other, 1)
    assert excinfo.value == Erc20Error(Erc20Error.Kind.INSUFFICIENT_FUNDS, address=poor)


def test_admin_required():
    _, octx = create_account()
    stranger, sctx = create_account()
    erc20 = ERC20Token(octx, 10)
    for call in (
        lambda: erc20.add_admin(sctx, stranger),
        lambda: erc20.mint(sctx, 5),
        lambda: erc20.burn(sctx, stranger, 5),
    ):
        with pytest.raises(Erc20Error) as excinfo:
            call()
        assert excinfo.value.kind is Erc20Error.Kind.ADMIN_PRIVILEGES_REQUIRED


def test_added_admin_can_mint():
    _, octx = create_account()
    admin, actx = create_account()
    erc20 = ERC20Token(octx, 10)
    erc20.add_admin(octx, admin)
    erc20.mint(actx, 5)
    assert erc20.total_supply(actx) == 15


def test_burn_clamps_at_zero():
    owner, ctx = create_account()
    erc20 = ERC20Token(ctx, 10)
    erc20.burn(ctx, owner, 25)
    assert erc20.balance_of(ctx) == 0


def test_allowance_defaults_to_zero():
    _, ctx = create_account()
    spender, _ = create_account()
    assert ERC20Token(ctx, 10).allowance(ctx, spender) == 0


def test_request_exceeds_allowance():
    owner, octx = create_account()
    spender, sctx = create_account()
    erc20 = ERC20Token(octx, 100)
    erc20.approve(octx, spender, 10)
    with pytest.raises(Erc20Error) as excinfo:
        erc20.transfer_from(sctx, owner, spender, 11)
    assert excinfo.value == Erc20Error(
        Erc20Error.Kind.REQUEST_EXCEEDS_ALLOWANCE, amount=11, allowance=10
    )
    assert str(excinfo.value) == "Transfer request 11 exceeds allowance 10."


def test_no_allowance_given():
    owner, octx = create_account()
    spender, sctx = create_account()
    other, _ = create_account()
    erc20 = ERC20Token(octx, 100)
    erc20.approve(octx, other, 10)
    with pytest.raises(Erc20Error) as excinfo:
        erc20.transfer_from(sctx, owner, spender, 1)
    assert excinfo.value.kind is Erc20Error.Kind.NO_ALLOWANCE_GIVEN


def test_transfer_from_insufficient_balance_keeps_allowance():
    owner, octx = create_account()
    spender, sctx = create_account()
    erc20 = ERC20Token(octx, 5)
    erc20.approve(octx, spender, 50)
    with pytest.raises(Erc20Error) as excinfo:
        erc20.transfer_from(sctx, owner, spender, 20)
    assert excinfo.value.kind is Erc20Error.Kind.INSUFFICIENT_FUNDS
    assert erc20.allowance(octx, spender) == 50