import pytest

from chainlab.memchain import Account, Memchain, PendingTransaction
from chainlab.traits import Address, TransactionOutcome

ADDR_1 = Address(bytes([1] * 20))
ADDR_2 = Address(bytes([2] * 20))
BASE_GAS = 2100


def giga(num):
    return num * 1_000_000_000


def nop_main(ptx):
    return 0


def simple_main(ptx):
    if ptx.sender != ADDR_2:
        raise AssertionError("unexpected sender")
    ptx.emit([bytes([42] * 32)], bytes(3))
    ptx.ret(ptx.input + b"\x04")
    return 0


def fail_main(ptx):
    ptx.err("¯\\_(ツ)_/¯".encode())
    return 1


def subtx_main(ptx):
    subtx = ptx.transact(ADDR_1, 0, ptx.input)
    if subtx.reverted():
        ptx.ret(b"error")
        return 1
    ptx.state_mut().set(b"common_key", b"uncommon_value")
    ptx.ret(subtx.output + b"\x05")
    return 0


def create_bc(mains):
    genesis = {}
    for i, main in enumerate(mains, start=1):
        genesis[Address(bytes([i] * 20))] = Account(
            balance=giga(i),
            code=f"\0asm not wasm {i}".encode(),
            storage={b"common_key": b"common_value", f"key_{i}".encode(): f"value_{i}".encode()},
            expiry=None,
            main=main,
        )
    return Memchain("memchain", genesis, BASE_GAS)


def test_transfer():
    bc = create_bc([None, nop_main])
    assert bc.last_block().account_meta_at(ADDR_1).balance == giga(1)
    assert bc.last_block().account_meta_at(ADDR_2).balance == giga(2)
    value = 50
    bc.last_block().transact(ADDR_1, ADDR_2, ADDR_1, value, b"", BASE_GAS, 1)
    assert bc.last_block().account_meta_at(ADDR_1).balance == giga(1) - BASE_GAS - value
    assert bc.last_block().account_meta_at(ADDR_2).balance == giga(2) + value


def test_static_account():
    bc = create_bc([None, None])
    bc.create_block()
    assert bc.last_block().account_meta_at(ADDR_1).balance == giga(1)
    assert bc.last_block().account_meta_at(ADDR_2).balance == giga(2)
    assert bc.last_block().code_at(ADDR_2) == b"\0asm not wasm 2"
    assert bc.last_block().state_at(ADDR_1).get(b"common_key") == b"common_value"
    assert bc.last_block().state_at(ADDR_2).get(b"common_key") == b"common_value"
    assert bc.block(1).state_at(ADDR_1).get(b"key_1") == b"value_1"
    assert bc.last_block().state_at(Address()) is None
    assert bc.last_block().state_at(ADDR_1).get(b"") is None


def test_simple_tx():
    bc = create_bc([simple_main, None])
    bc.last_block().transact(ADDR_2, ADDR_1, ADDR_1, 50, bytes([1, 2, 3]), BASE_GAS, 0)
    assert bc.last_block().receipts()[-1].output == bytes([1, 2, 3, 4])


def test_revert_tx():
    bc = create_bc([None, fail_main])
    bc.last_block().transact(ADDR_1, ADDR_2, ADDR_2, 10_000, b"", BASE_GAS, 1)
    assert bc.last_block().account_meta_at(ADDR_2).balance == giga(2) - BASE_GAS
    assert bc.last_block().account_meta_at(ADDR_1).balance == giga(1)


def test_subtx_ok():
    bc = create_bc([simple_main, subtx_main])
    receipt = bc.last_block().transact(
        ADDR_1, ADDR_2, ADDR_2, 1000, bytes([1, 2, 3]), BASE_GAS * 2, 0
    )
    assert receipt.outcome is TransactionOutcome.SUCCESS
    assert bc.last_block().receipts()[-1].output == bytes([1, 2, 3, 4, 5])
    events = bc.last_block().events()
    assert len(events) == 1
    assert events[0].topics == (bytes([42] * 32),)
    assert events[0].data == bytes([0, 0, 0])
    assert bc.last_block().state_at(ADDR_2).get(b"common_key") == b"uncommon_value"


def test_subtx_revert():
    bc = create_bc([fail_main, subtx_main])
    bc.last_block().transact(ADDR_1, ADDR_2, ADDR_2, 0, bytes([1, 2, 3]), BASE_GAS, 0)
    assert bc.last_block().receipts()[-1].output == b"error"
    assert bc.last_block().events() == []
    assert bc.last_block().state_at(ADDR_2).get(b"common_key") == b"common_value"


def test_invalid_callee():
    bc = create_bc([None])
    receipt = bc.last_block().transact(ADDR_1, ADDR_2, ADDR_1, 0, b"", BASE_GAS, 0)
    assert receipt.outcome is TransactionOutcome.INVALID_CALLEE
    assert receipt.reverted()
    assert bc.last_block().receipts()[-1].outcome is TransactionOutcome.INVALID_CALLEE


def test_insufficient_gas():
    bc = create_bc([None, nop_main])
    receipt = bc.last_block().transact(ADDR_1, ADDR_2, ADDR_1, 0, b"", BASE_GAS - 1, 1)
    assert receipt.outcome is TransactionOutcome.INSUFFICIENT_GAS
    assert bc.last_block().account_meta_at(ADDR_1).balance == giga(1)


def test_payer_insufficient_funds_zeroes_balance():
    bc = create_bc([None, nop_main])
    receipt = bc.last_block().transact(ADDR_1, ADDR_2, ADDR_1, 0, b"", BASE_GAS, giga(1))
    assert receipt.outcome is TransactionOutcome.INSUFFICIENT_FUNDS
    assert bc.last_block().account_meta_at(ADDR_1).balance == 0


def test_caller_insufficient_funds_keeps_state():
    bc = create_bc([None, nop_main])
    receipt = bc.last_block().transact(ADDR_1, ADDR_2, ADDR_1, giga(5), b"", BASE_GAS, 0)
    assert receipt.outcome is TransactionOutcome.INSUFFICIENT_FUNDS
    assert bc.last_block().account_meta_at(ADDR_2).balance == giga(2)


def test_blocks_are_independent():
    bc = create_bc([None, nop_main])
    first = bc.last_block()
    second = bc.create_block()
    assert second.height == 1
    assert bc.block(0) is first
    assert bc.block(2) is None
    second.transact(ADDR_1, ADDR_2, ADDR_1, 50, b"", BASE_GAS, 0)
    assert second.account_meta_at(ADDR_2).balance == giga(2) + 50
    assert first.account_meta_at(ADDR_2).balance == giga(2)


def _ptx():
    accounts = {ADDR_1: Account(balance=10)}
    return PendingTransaction(
        caller=ADDR_2, callee=ADDR_1, value=0, accounts=accounts,
        input=b"in", gas_left=0, base_gas=BASE_GAS,
    )


def test_ret_twice_raises():
    ptx = _ptx()
    ptx.ret(b"once")
    assert ptx.output == b"once"
    with pytest.raises(RuntimeError):
        ptx.ret(b"twice")


def test_err_aborts():
    ptx = _ptx()
    ptx.err(b"bad")
    assert ptx.outcome is TransactionOutcome.ABORTED
    assert ptx.output == b"bad"


def test_emit_truncates_and_rejects_short_topics():
    ptx = _ptx()
    ptx.emit([bytes([9] * 40)], b"d")
    assert ptx.events[0].topics == (bytes([9] * 32),)
    assert ptx.events[0].emitter == ADDR_1
    with pytest.raises(ValueError):
        ptx.emit([bytes(31)], b"d")


def test_account_kvstore():
    acct = Account()
    acct.set(b"k", b"v")
    assert acct.contains(b"k")
    assert acct.get(b"k") == b"v"
    acct.remove(b"k")
    assert not acct.contains(b"k")
    acct.remove(b"k")
    assert acct.get(b"k") is None


def test_ptx_accessors():
    ptx = _ptx()
    assert ptx.address == ADDR_1
    assert ptx.sender == ADDR_2
    assert ptx.account_meta_at(ADDR_1).balance == 10
    assert ptx.code_at(ADDR_2) is None
    ptx.state_mut().set(b"a", b"b")
    assert ptx.state().get(b"a") == b"b"


def test_nested_transact_insufficient_gas():
    ptx = _ptx()
    receipt = ptx.transact(ADDR_1, 0, b"")
    assert receipt.outcome is TransactionOutcome.INSUFFICIENT_GAS
    assert receipt.gas_used == 0