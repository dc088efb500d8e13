# palletry

A set of in-memory runtime modules. Each one models a chain-style state
machine. A call is made from an `Origin`. It checks its arguments, changes the
module's in-memory state and, on success, records an event with a shared
`System`. A call that is refused raises a subclass of `DispatchError`.
Arguments outside the range a field can hold, such as a negative or too-large
32-bit value, raise `ValueError`.

The package has no dependencies beyond the standard library.

## Installation

```
pip install .
```

Install with `pip install .[test]` to add pytest, which runs the test suite.

## Building blocks

`palletry.runtime` holds the parts the other modules share.

- `Origin.signed(account)`, `Origin.root()` and `Origin.none()` say who made
  a call. `ensure_signed(origin)` returns the signing account.
  `ensure_none(origin)` accepts only unsigned origins. Both raise `BadOrigin`
  for any other origin.
- `System(block_number=0)` keeps the current block number and a list of
  `EventRecord`s (`phase`, `event`, `topics`). Its methods are
  `deposit_event`, `events`, `reset_events`, `set_block_number` and
  `run_to_block`. `run_to_block` only ever moves the block number forward.
  While the block number is 0, `deposit_event` records nothing.
- `Balances(system, existential_deposit=1, balances=...)` is a currency
  ledger. It tracks free and reserved balances and named locks, and it drops
  any account whose total falls below the existential deposit.
  - Queries: `free_balance`, `reserved_balance`, `total_balance` and `locks`.
  - Moving funds: `deposit_creating`, `withdraw`, `transfer`, `reserve` and
    `unreserve`. `unreserve` returns the part it could not release.
  - Locks: `set_lock`, `extend_lock` and `remove_lock`.
  - Errors: `InsufficientBalance` when the free balance is too small, and
    `LiquidityRestrictions` when a lock would be broken.
  - Events: `Endowed`, `Transfer`, `Reserved` and `Unreserved`.

## Modules

- `hello_substrate.HelloSubstrate`: `say_hello` logs a greeting and the
  caller. The caller must be signed.
- `simple_event.SimpleEvent` and `generic_event.GenericEvent`: `do_something`
  emits an `EmitInput` event. The one from `generic_event` also carries the
  caller.
- `last_caller.LastCaller`: `call` stores the caller in `caller` and emits
  `Called`.
- `lockable_currency.LockableCurrency`: `lock_capital`, `extend_lock` and
  `unlock_all` manage a single lock on the caller's funds.
- `fixed_point.FixedPoint`: three accumulators that start at one and are
  multiplied by each new factor:
  - `update_permill` uses `Permill`, parts per million, which cannot
    overflow;
  - `update_fixed` uses `U16F16`, 16.16 fixed point;
  - `update_manual` uses a plain integer in 16.16 layout.

  The last two raise `Overflow` when the product does not fit.
- `simple_map.SimpleMap`: one unsigned 32-bit entry per account, through
  `set_single_entry`, `get_single_entry`, `take_single_entry` and
  `increase_single_entry`. The errors are `NoValueStored` and
  `MaxValueReached`.
- `map_set.MapSet`: a membership set of at most 16 accounts, through
  `add_member`, `remove_member`, `is_member` and `accounts`. The errors are
  `AlreadyMember`, `NotMember` and `MembershipLimitReached`.
- `randomness`:
  - `CollectiveFlip` mixes the parent hashes recorded by `on_initialize`,
    using BLAKE2b. Until any hash has been recorded it returns the zero hash.
  - `RandomnessPallet.consume_randomness` emits `RandomnessConsumed` with
    the seed and a value drawn with an incrementing nonce.
- `reservable_currency.ReservableCurrency`: `reserve_funds`,
  `unreserve_funds`, `transfer_funds` and `unreserve_and_transfer`, each
  emitting an event that carries the block number.
- `ringbuffer.RingBufferTransient`: a FIFO view over a `RingBufferStorage`.
  - Items are written to storage at once.
  - The `(start, end)` bounds are written back by `commit`, or when a `with`
    block around the transient ends.
  - A push into a full buffer overwrites the oldest item.
- `ringbuffer_queue.RingBufferQueue`: a queue of `ValueStruct`s whose
  indices wrap at 256.
  - Adding items: `add_to_queue` and `add_multiple`.
  - `pop_from_queue` emits `Popped`.
  - Inspecting storage: `get_value` and `range`.
- `crowdfund.SimpleCrowdfund`: crowdfunding campaigns. Each fund's pot is
  held in its own account.
  - `create` opens a fund and takes the submission deposit.
  - `contribute` adds funds before the end block.
  - `withdraw` returns a contribution after the end block.
  - `dissolve` lets anyone collect what is left once the retirement period
    has passed.
  - `dispense` pays a successful fund to its beneficiary and gives the
    deposit to the caller.
- `ocw_demo.OcwDemo`: an off-chain worker. `offchain_worker(block_number)`
  runs one of four jobs, chosen by the block number:
  - send a signed transaction;
  - send an unsigned transaction;
  - send an unsigned transaction with a signed payload;
  - fetch and cache organisation information, under a `StorageLock`.

  `validate_unsigned` accepts the two unsigned calls. It raises
  `InvalidTransaction` for a bad payload signature or for any other call.

## Example

```python
from palletry.runtime import Balances, Origin, System
from palletry.reservable_currency import ReservableCurrency

system = System(block_number=1)
balances = Balances(system, existential_deposit=1, balances={1: 10000, 2: 11000})
pallet = ReservableCurrency(system, balances)

pallet.reserve_funds(Origin.signed(1), 5000)
assert balances.free_balance(1) == 5000
assert balances.reserved_balance(1) == 5000
```

## What it does not do

Everything lives in memory, in plain Python objects.

- There is no persistent storage.
- There is no block production, networking, consensus or transaction
  dispatch, and changes are not rolled back when a call fails part-way.
- There is no command-line program.
- `OcwDemo` has no HTTP client, key store or transaction pool of its own. The
  caller supplies them as the `fetch`, `signer` and `transaction_pool`
  arguments.