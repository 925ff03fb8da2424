# con_stream.py
# A single token stream: participants deposit the in-token while the stream is
# bootstrapping or active, the out-token is released linearly over the
# streaming window, and the outcome (settle or refund) is decided by the
# threshold on spent in-token once the stream has ended.
I = importlib

stream_state = Variable()
stream_phase = Variable()
metadata = Hash()

reentrancyGuardActive = Variable(default_value=False)

WAITING = 'WAITING'
BOOTSTRAPPING = 'BOOTSTRAPPING'
ACTIVE = 'ACTIVE'
ENDED = 'ENDED'
SETTLED_SUCCESS = 'SETTLED_SUCCESS'
SETTLED_REFUND = 'SETTLED_REFUND'
CANCELLED = 'CANCELLED'

MINT = 'MINT'
BURN = 'BURN'

# Standard XSC001 (Fungible Token) interface
token_interface = [
    I.Func('transfer_from', args=('amount', 'to', 'main_account')),
    I.Func('transfer', args=('amount', 'to')),
    I.Func('approve', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
]

# Events
Deposited = LogEvent(
    event="deposited",
    params={
        "account": {'type': str, 'idx': True},
        "amount": {'type': int},
        "fee": {'type': int},
        "shares": {'type': int},
        "in_balance": {'type': int}
    })

Withdrawn = LogEvent(
    event="withdrawn",
    params={
        "account": {'type': str, 'idx': True},
        "amount": {'type': int},
        "shares_burned": {'type': int},
        "in_balance": {'type': int}
    })

Exited = LogEvent(
    event="exited",
    params={
        "account": {'type': str, 'idx': True},
        "outcome": {'type': str, 'idx': False},
        "in_amount": {'type': int},
        "out_amount": {'type': int}
    })

StreamFinalized = LogEvent(
    event="stream_finalized",
    params={
        "creator": {'type': str, 'idx': True},
        "outcome": {'type': str, 'idx': False},
        "creator_revenue": {'type': int},
        "fee": {'type': int},
        "out_returned": {'type': int}
    })

StreamCancelled = LogEvent(
    event="stream_cancelled",
    params={
        "caller": {'type': str, 'idx': True},
        "out_returned": {'type': int},
        "previous_phase": {'type': str, 'idx': False}
    })

StreamMetadataUpdated = LogEvent(
    event="stream_metadata_updated",
    params={
        "stream": {'type': str, 'idx': True},
        "metadata_hash": {'type': str, 'idx': False}
    })

@construct
def seed(creator: str, in_token: str, out_token: str, out_supply: int,
         bootstrapping_start: int, stream_start: int, stream_end: int, threshold: int,
         in_decimals: int, out_decimals: int, protocol_admin: str, fee_collector: str,
         exit_fee_ratio: int, subscription_fee_ratio: int, allowlist_root: str,
         creator_vesting_duration: int, beneficiary_vesting_duration: int,
         pool_out_supply: int, name: str):
    assert bootstrapping_start <= stream_start, 'InvalidInput: bootstrapping must start before streaming.'
    assert stream_start < stream_end, 'InvalidInput: streaming must end after it starts.'
    assert out_supply > 0, 'InvalidInput: out supply must be positive.'
    assert threshold >= 0 and pool_out_supply >= 0, 'InvalidInput: amounts must be non-negative.'
    assert 0 <= exit_fee_ratio <= 1000000, 'InvalidInput: exit fee ratio must be within 0..1.'
    assert 0 <= subscription_fee_ratio <= 1000000, 'InvalidInput: subscription fee ratio must be within 0..1.'
    assert 0 <= in_decimals <= 18 and 0 <= out_decimals <= 18, 'InvalidInput: token decimals must be within 0..18.'
    assert creator_vesting_duration >= 0 and beneficiary_vesting_duration >= 0, \
        'InvalidInput: vesting durations must be non-negative.'

    metadata['operator'] = ctx.caller
    metadata['name'] = name
    metadata['metadata_hash'] = ''
    metadata['creator'] = creator
    metadata['protocol_admin'] = protocol_admin
    metadata['fee_collector'] = fee_collector
    metadata['in_token'] = in_token
    metadata['out_token'] = out_token
    metadata['in_decimals'] = in_decimals
    metadata['out_decimals'] = out_decimals
    metadata['bootstrapping_start'] = bootstrapping_start
    metadata['stream_start'] = stream_start
    metadata['stream_end'] = stream_end
    metadata['threshold'] = threshold
    metadata['exit_fee_ratio'] = exit_fee_ratio
    metadata['subscription_fee_ratio'] = subscription_fee_ratio
    metadata['allowlist_root'] = allowlist_root
    metadata['creator_vesting_duration'] = creator_vesting_duration
    metadata['beneficiary_vesting_duration'] = beneficiary_vesting_duration
    metadata['pool_out_supply'] = pool_out_supply

    # Collaborators
    metadata['math_contract'] = 'con_stream_math'
    metadata['positions_contract'] = 'con_stream_positions'
    metadata['allowlist_contract'] = 'con_stream_allowlist'
    metadata['vesting_contract'] = 'con_stream_vesting'
    metadata['pool_contract'] = 'con_stream_pool'
    metadata['native_token'] = 'currency'
    assert asset_name(in_token) != asset_name(out_token), 'InvalidInput: in and out tokens must differ.'

    stream_phase.set(WAITING)
    stream_state.set({
        "out_remaining": out_supply,
        "dist_index": 0,
        "spent_in": 0,
        "shares": 0,
        "current_price": 0,
        "out_supply": out_supply,
        "in_supply": 0,
        "last_updated": 0
    })
    reentrancyGuardActive.set(False)

# --- Collaborators ---
def stream_math():
    return I.import_module(metadata['math_contract'])

def position_store():
    return I.import_module(metadata['positions_contract'])

def current_time():
    return stream_math().to_timestamp(dt=now)

def asset_name(token):
    # An empty token id stands for the chain's native currency.
    if not token:
        return metadata['native_token']
    return token

def asset(token):
    token_contract = I.import_module(asset_name(token))
    assert I.enforce_interface(token_contract, token_interface), 'InvalidInput: token contract not XSC001-compliant'
    return token_contract

def send(token, to, amount):
    if amount > 0:
        asset(token).transfer(amount=amount, to=to)

def pull(token, account, amount):
    if amount > 0:
        asset(token).transfer_from(amount=amount, to=ctx.this, main_account=account)

def vest(token, beneficiary, amount, start, duration):
    vesting_name = metadata['vesting_contract']
    asset(token).approve(amount=amount, to=vesting_name)
    return I.import_module(vesting_name).create_vesting(
        beneficiary=beneficiary,
        token=asset_name(token),
        amount=amount,
        start=start,
        duration=duration
    )

def enter():
    assert not reentrancyGuardActive.get(), "Stream contract is busy, please try again."
    reentrancyGuardActive.set(True)

def leave():
    reentrancyGuardActive.set(False)

# --- Synchronisation ---
def sync_stream_state():
    # Phase first, then the ledger tick; both are persisted before any gate is checked.
    lib = stream_math()
    timestamp = current_time()
    phase = lib.next_phase(
        current=stream_phase.get(),
        timestamp=timestamp,
        bootstrapping_start=metadata['bootstrapping_start'],
        stream_start=metadata['stream_start'],
        stream_end=metadata['stream_end']
    )
    state = stream_state.get()
    if not lib.is_terminal(phase=phase):
        state = lib.tick(
            state=state,
            timestamp=timestamp,
            stream_start=metadata['stream_start'],
            stream_end=metadata['stream_end'],
            in_decimals=metadata['in_decimals'],
            out_decimals=metadata['out_decimals']
        )
        stream_state.set(state)
    stream_phase.set(phase)
    return phase, state, timestamp

def synced_position(account, state, timestamp):
    position = position_store().get_position(account=account)
    return stream_math().sync_position(
        position=position,
        dist_index=state['dist_index'],
        total_shares=state['shares'],
        in_supply=state['in_supply'],
        timestamp=timestamp
    )

def threshold_reached(phase, state):
    if phase == SETTLED_SUCCESS:
        return True
    return phase == ENDED and state['spent_in'] >= metadata['threshold']

@export
def sync_stream():
    enter()
    phase, state, timestamp = sync_stream_state()
    leave()
    return phase

@export
def sync_position(account: str):
    enter()
    phase, state, timestamp = sync_stream_state()
    store = position_store()
    assert store.has_position(account=account), 'InvalidPosition: no position in this stream.'
    position = synced_position(account, state, timestamp)
    store.set_position(account=account, position=position)
    leave()
    return position

# --- Deposits ---
def subscribe(account, amount, proof):
    phase, state, timestamp = sync_stream_state()
    assert phase == BOOTSTRAPPING or phase == ACTIVE, f'OperationNotAllowed: deposits are closed while {phase}.'
    assert amount > 0, 'InvalidInput: deposit amount must be positive.'

    store = position_store()
    root = metadata['allowlist_root']
    # The allow-list is only consulted on an account's first deposit.
    if root and not store.has_position(account=account):
        allowlist = I.import_module(metadata['allowlist_contract'])
        assert allowlist.verify(proof=proof, root=root, account=account), \
            'Unauthorized: account is not on the allow-list.'

    lib = stream_math()
    fee, net_amount = lib.split_fee(amount=amount, ratio=metadata['subscription_fee_ratio'])

    # --- INTERACTION: pull the full amount, forward the fee ---
    pull(metadata['in_token'], account, amount)
    send(metadata['in_token'], metadata['fee_collector'], fee)

    # --- EFFECTS ---
    position = synced_position(account, state, timestamp)
    new_shares = lib.compute_shares(
        amount=net_amount, direction=MINT, in_supply=state['in_supply'], total_shares=state['shares']
    )
    assert new_shares > 0, 'InvalidInput: deposit too small to mint any shares.'

    position['in_balance'] += net_amount
    position['shares'] += new_shares
    state['in_supply'] += net_amount
    state['shares'] += new_shares

    stream_state.set(state)
    store.set_position(account=account, position=position)

    Deposited({
        "account": account,
        "amount": net_amount,
        "fee": fee,
        "shares": new_shares,
        "in_balance": position['in_balance']
    })
    return position

@export
def deposit(amount: int, proof: list):
    enter()
    position = subscribe(ctx.caller, amount, proof)
    leave()
    return position

@export
def deposit_with_permit(owner: str, amount: int, deadline: int, signature: str, proof: list):
    enter()
    # The signed permit grants this stream the allowance that subscribe() pulls.
    asset(metadata['in_token']).permit(
        owner=owner, spender=ctx.this, value=amount, deadline=deadline, signature=signature
    )
    position = subscribe(owner, amount, proof)
    leave()
    return position

# --- Withdrawals ---
@export
def withdraw(amount: int):
    enter()
    phase, state, timestamp = sync_stream_state()
    assert phase == BOOTSTRAPPING or phase == ACTIVE, f'OperationNotAllowed: withdrawals are closed while {phase}.'
    assert amount >= 0, 'InvalidInput: withdrawal amount must not be negative.'

    account = ctx.caller
    store = position_store()
    position = synced_position(account, state, timestamp)
    assert position['shares'] > 0 and position['exit_date'] == 0, 'InvalidPosition: no shares to withdraw.'

    # Zero means everything that is still unspent.
    if amount == 0:
        amount = position['in_balance']
    assert amount <= position['in_balance'], \
        f"ExceedsBalance: withdrawal {amount} exceeds in-balance {position['in_balance']}."
    assert amount > 0, 'InvalidPosition: nothing left to withdraw.'

    if amount == position['in_balance']:
        burned = position['shares']
    else:
        burned = stream_math().compute_shares(
            amount=amount, direction=BURN, in_supply=state['in_supply'], total_shares=state['shares']
        )
        assert burned < position['shares'], \
            'InvalidInput: partial withdrawal would burn every share, withdraw everything instead.'

    position['in_balance'] -= amount
    position['shares'] -= burned
    state['in_supply'] -= amount
    state['shares'] -= burned

    stream_state.set(state)
    store.set_position(account=account, position=position)

    # --- INTERACTION ---
    send(metadata['in_token'], account, amount)

    Withdrawn({
        "account": account,
        "amount": amount,
        "shares_burned": burned,
        "in_balance": position['in_balance']
    })
    leave()
    return position

# --- Exit ---
@export
def exit_stream():
    enter()
    phase, state, timestamp = sync_stream_state()
    assert phase in [ENDED, SETTLED_SUCCESS, SETTLED_REFUND, CANCELLED], \
        f'OperationNotAllowed: cannot exit while {phase}.'

    account = ctx.caller
    store = position_store()
    assert store.has_position(account=account), 'InvalidPosition: no position in this stream.'
    position = synced_position(account, state, timestamp)
    assert position['exit_date'] == 0, 'InvalidPosition: position already exited.'

    position['exit_date'] = timestamp
    store.set_position(account=account, position=position)

    if threshold_reached(phase, state):
        outcome = SETTLED_SUCCESS
        in_amount = position['in_balance']
        out_amount = position['purchased']
        send(metadata['in_token'], account, in_amount)
        vesting_duration = metadata['beneficiary_vesting_duration']
        if vesting_duration > 0 and out_amount > 0:
            vest(metadata['out_token'], account, out_amount, timestamp, vesting_duration)
        else:
            send(metadata['out_token'], account, out_amount)
    else:
        outcome = SETTLED_REFUND
        in_amount = position['in_balance'] + position['spent_in']
        out_amount = 0
        send(metadata['in_token'], account, in_amount)

    Exited({
        "account": account,
        "outcome": outcome,
        "in_amount": in_amount,
        "out_amount": out_amount
    })
    leave()
    return position

# --- Settlement ---
@export
def finalize_stream():
    enter()
    creator = metadata['creator']
    assert ctx.caller == creator, 'Unauthorized: only the creator can finalize the stream.'
    phase, state, timestamp = sync_stream_state()
    assert phase == ENDED, f'OperationNotAllowed: cannot finalize while {phase}.'

    pool_out = metadata['pool_out_supply']

    if state['spent_in'] < metadata['threshold']:
        stream_phase.set(SETTLED_REFUND)
        out_returned = state['out_supply'] + pool_out
        send(metadata['out_token'], creator, out_returned)

        StreamFinalized({
            "creator": creator,
            "outcome": SETTLED_REFUND,
            "creator_revenue": 0,
            "fee": 0,
            "out_returned": out_returned
        })
        leave()
        return SETTLED_REFUND

    stream_phase.set(SETTLED_SUCCESS)
    fee, revenue = stream_math().split_fee(amount=state['spent_in'], ratio=metadata['exit_fee_ratio'])

    # Liquidity is seeded at the stream's average price, capped by what the creator earned.
    pool_in = 0
    released = state['out_supply'] - state['out_remaining']
    if pool_out > 0 and released > 0:
        pool_in = min(revenue, pool_out * state['spent_in'] // released)
    revenue -= pool_in

    out_returned = state['out_remaining']
    if pool_in == 0:
        out_returned += pool_out

    # --- INTERACTIONS (phase already persisted) ---
    send(metadata['in_token'], metadata['fee_collector'], fee)

    vesting_duration = metadata['creator_vesting_duration']
    if vesting_duration > 0 and revenue > 0:
        vest(metadata['in_token'], creator, revenue, timestamp, vesting_duration)
    else:
        send(metadata['in_token'], creator, revenue)

    send(metadata['out_token'], creator, out_returned)

    if pool_in > 0:
        pool_name = metadata['pool_contract']
        asset(metadata['in_token']).approve(amount=pool_in, to=pool_name)
        asset(metadata['out_token']).approve(amount=pool_out, to=pool_name)
        I.import_module(pool_name).add_liquidity(
            token_a=asset_name(metadata['in_token']),
            token_b=asset_name(metadata['out_token']),
            amount_a=pool_in,
            amount_b=pool_out,
            provider=creator
        )

    StreamFinalized({
        "creator": creator,
        "outcome": SETTLED_SUCCESS,
        "creator_revenue": revenue,
        "fee": fee,
        "out_returned": out_returned
    })
    leave()
    return SETTLED_SUCCESS

def cancel(previous_phase):
    stream_phase.set(CANCELLED)
    out_returned = stream_state.get()['out_supply'] + metadata['pool_out_supply']
    send(metadata['out_token'], metadata['creator'], out_returned)

    StreamCancelled({
        "caller": ctx.caller,
        "out_returned": out_returned,
        "previous_phase": previous_phase
    })

@export
def cancel_stream():
    enter()
    assert ctx.caller == metadata['creator'], 'Unauthorized: only the creator can cancel the stream.'
    phase, state, timestamp = sync_stream_state()
    assert phase == WAITING, f'OperationNotAllowed: the creator can only cancel while WAITING, not {phase}.'
    cancel(phase)
    leave()

@export
def cancel_with_admin():
    enter()
    assert ctx.caller == metadata['protocol_admin'], 'Unauthorized: only the protocol admin can force a cancel.'
    phase, state, timestamp = sync_stream_state()
    assert phase in [WAITING, BOOTSTRAPPING, ACTIVE], f'OperationNotAllowed: cannot cancel while {phase}.'
    cancel(phase)
    leave()

# --- Metadata ---
@export
def update_stream_metadata(metadata_hash: str):
    assert not reentrancyGuardActive.get(), "Stream contract is busy, cannot change metadata now."
    assert ctx.caller == metadata['creator'], 'Unauthorized: only the creator can update stream metadata.'
    assert metadata_hash, 'InvalidInput: metadata hash must not be empty.'
    metadata['metadata_hash'] = metadata_hash

    StreamMetadataUpdated({
        "stream": ctx.this,
        "metadata_hash": metadata_hash
    })

# --- Helper/View functions ---
@export
def get_stream_metadata():
    return {
        "name": metadata['name'],
        "metadata_hash": metadata['metadata_hash']
    }

@export
def get_stream_state():
    return stream_state.get()

@export
def get_stream_phase():
    return stream_phase.get()

@export
def get_position(account: str):
    return position_store().get_position(account=account)
