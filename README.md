# chainlab

An in-memory blockchain for exercising smart-contract logic in tests. It also
provides a virtual filesystem that gives a running transaction access to the
chain, and a handful of sample services. It has no dependencies beyond the
standard library.

## What is in the package

- `chainlab.traits` holds the shared types:
  - `Address` is a 20-byte value. It has `from_hex` and `hex`.
  - `AccountMeta` and `Event`.
  - `TransactionOutcome`, whose `reverted()` is true for every outcome except
    `SUCCESS`.
  - The abstract storage interfaces `KVStore` and `KVStoreMut`.
  - `Context` is the call context passed to the sample services. It holds a
    sender, an optional gas limit and a list of emitted events. Contexts made
    with `with_sender` / `with_gas` share that list.
- `chainlab.memchain` is the chain itself. It holds `Memchain`, `Block`,
  `Account`, `PendingTransaction` and `Receipt`.
- `chainlab.vfs_file` holds the file-table types used by the filesystem:
  - `ErrNo`, `FsError`, `OpenFlags`, `FdFlags`, `Whence`.
  - `FileType`, `FileStat`, `FdStat`, `FileKind`, `File`.
  - `default_files`.
- `chainlab.bcfs` holds `BCFS`, the filesystem, and `parse_log`.
- `chainlab.examples` holds the sample services:
  - `ballot.Ballot`
  - `hello_world.HelloWorld`
  - `erc20.ERC20Token`
  - `messaging.MessageBoard`
  - `auctions.AuctionMarket`

## Install

```
pip install .
pip install ".[test]"   # adds pytest for running the test suite
```

## The chain

A genesis state maps each `Address` to an `Account`. An account has:

- a balance,
- code,
- key-value storage,
- an optional `main` callable.

`main` receives the `PendingTransaction` and returns a non-zero value to
revert.

`Block.transact(caller, callee, payer, value, input, gas, gas_price)` runs a
transaction:

1. The payer is charged `gas * gas_price` before anything runs. The charge
   stays even if the transaction reverts.
2. `value` moves from the caller to the callee.
3. The callee's `main` is called.

A reverted transaction leaves the block's state as it was, apart from the gas
charge, and its events are dropped. Inside `main`, `ptx.transact(callee,
value, input)` runs a nested transaction with the same rules.

```python
from chainlab.memchain import Account, Memchain
from chainlab.traits import Address

alice = Address(bytes([1]) * 20)
bob = Address(bytes([2]) * 20)

def echo(ptx):
    ptx.ret(ptx.input + b"!")
    return 0

chain = Memchain("demo", {alice: Account(balance=10_000), bob: Account(main=echo)}, 2100)
receipt = chain.last_block().transact(alice, bob, alice, 50, b"hi", 2100, 0)
assert receipt.output == b"hi!"
assert not receipt.reverted()
```

Other `Memchain` and `Block` methods:

- `Memchain.create_block()` appends a block that starts from a copy of the
  last block's state.
- `Memchain.block(height)` returns the block at that height, or `None`.
- `Block.receipts()`, `Block.events()`, `Block.code_at`,
  `Block.account_meta_at` and `Block.state_at` report on a block.

## The filesystem

A `BCFS(home_addr, blockchain_name)` is a file table for one pending
transaction. Every method takes the `PendingTransaction` as its first
argument. Failures raise `FsError`, whose `errno` attribute is an `ErrNo`.

The preopened descriptors are:

| Descriptor | File |
| --- | --- |
| 0 | stdin, which reads the transaction input |
| 1 | stdout, which is returned with `ptx.ret` on flush |
| 2 | stderr, which is returned with `ptx.err` on flush |
| 3 | the chain directory |
| 4 | the home directory of `home_addr` |

Paths must be relative.

Under the chain directory:

- `<hex address>/balance` holds the balance as 16 little-endian bytes.
- `<hex address>/bytecode` holds the account's code.
- `log` must be opened with `FdFlags.APPEND`. On flush, its contents are
  parsed with `parse_log` and emitted as an event.

Under the home directory, regular files are entries of the current account's
storage, keyed by their path. A write stays cached until `flush` or `close`
stores it. Other open descriptors on the same file then see the stored
contents.

```python
from chainlab.bcfs import BCFS
from chainlab.vfs_file import HOME_DIR_FILENO, FdFlags, OpenFlags, Whence

def main(ptx):
    fs = BCFS(ptx.address, "demo")
    fd = fs.open(ptx, HOME_DIR_FILENO, "notes", OpenFlags.CREATE, FdFlags(0))
    fs.write_vectored(ptx, fd, [b"hello"])
    fs.seek(ptx, fd, 0, Whence.START)
    buf = bytearray(5)
    fs.read_vectored(ptx, fd, [buf])
    fs.close(ptx, fd)
    return 0
```

## The sample services

Each service is a plain Python object. Every method takes a `Context` as its
first argument. Refusals raise the service's own error class:

- `BallotError`
- `HelloWorldError`
- `Erc20Error`
- `MessageBoardError`
- `AuctionError`

```python
from chainlab.examples.ballot import Ballot
from chainlab.traits import Address, Context

admin = Context().with_sender(Address(bytes([7]) * 20))
ballot = Ballot(admin, "What's for dinner?", ["beef", "yogurt"])
ballot.vote(admin, 1)
ballot.close(admin)
assert ballot.winner(admin) == 1
```

## What it does not do

- There is no command-line tool, network interface or persistence. Everything
  lives in memory for as long as the Python objects do.
- The sample services are not deployed onto a `Memchain`. They do not store
  their state in account storage, and they are not called through
  transactions. A `Context` only records the events emitted into it.
- Account `main` entry points are Python callables. No contract bytecode is
  executed.

## Running the tests

```
pytest
```