# con_stream_math.py
# Pure accounting library for streams. Holds no state; every function takes
# its inputs explicitly and returns new values, so the stream contract can
# call it before deciding what to persist.

# Decimals are integers scaled by SCALE (6 fraction digits).
SCALE = 1000000
PRICE_DECIMALS = 18

WAITING = 'WAITING'
BOOTSTRAPPING = 'BOOTSTRAPPING'
ACTIVE = 'ACTIVE'
ENDED = 'ENDED'
SETTLED_SUCCESS = 'SETTLED_SUCCESS'
SETTLED_REFUND = 'SETTLED_REFUND'
CANCELLED = 'CANCELLED'

PHASES = [WAITING, BOOTSTRAPPING, ACTIVE, ENDED, SETTLED_SUCCESS, SETTLED_REFUND, CANCELLED]
TERMINAL_PHASES = [SETTLED_SUCCESS, SETTLED_REFUND, CANCELLED]

MINT = 'MINT'
BURN = 'BURN'

# --- Decimal primitives ---
@export
def from_integer(n: int):
    assert n >= 0, 'InvalidInput: decimals are non-negative.'
    return n * SCALE

@export
def from_ratio(numerator: int, denominator: int):
    assert denominator != 0, 'DivideByZero: ratio denominator is zero.'
    return numerator * SCALE // denominator

@export
def add(a: int, b: int):
    return a + b

@export
def sub(a: int, b: int):
    assert a >= b, 'Underflow: decimal subtraction below zero.'
    return a - b

@export
def mul(a: int, b: int):
    return a * b // SCALE

@export
def mul_scalar(a: int, scalar: int):
    return a * scalar

@export
def div(a: int, b: int):
    assert b != 0, 'DivideByZero: decimal division by zero.'
    return a * SCALE // b

@export
def div_scalar(a: int, scalar: int):
    assert scalar != 0, 'DivideByZero: decimal division by zero.'
    return a // scalar

@export
def greater_than(a: int, b: int):
    return a > b

@export
def less_than(a: int, b: int):
    return a < b

@export
def floor_to_integer(a: int):
    return a // SCALE

@export
def ceil_to_integer(a: int):
    return (a + SCALE - 1) // SCALE

@export
def split_integer(a: int):
    # Whole part plus the Decimal remainder, e.g. 100.5 -> (100, 0.5)
    return a // SCALE, a % SCALE

# --- Phases ---
@export
def is_terminal(phase: str):
    assert phase in PHASES, f'InvalidInput: unknown phase {phase}.'
    return phase in TERMINAL_PHASES

@export
def next_phase(current: str, timestamp: int, bootstrapping_start: int, stream_start: int, stream_end: int):
    if is_terminal(current):
        return current
    if timestamp < bootstrapping_start:
        return WAITING
    if timestamp < stream_start:
        return BOOTSTRAPPING
    if timestamp < stream_end:
        return ACTIVE
    return ENDED

# --- Distribution state ---
@export
def time_diff(timestamp: int, stream_start: int, stream_end: int, last_updated: int):
    # Fraction of the remaining streaming window that elapsed since the last tick.
    start = max(last_updated, stream_start)
    numerator = min(timestamp, stream_end) - start
    denominator = stream_end - start
    if numerator <= 0 or denominator <= 0:
        return 0
    return from_ratio(numerator, denominator)

@export
def normalize_amount(amount: int, decimals: int):
    assert 0 <= decimals <= PRICE_DECIMALS, 'InvalidInput: token decimals must be within 0..18.'
    return amount * 10 ** (PRICE_DECIMALS - decimals)

@export
def apply_diff(state: dict, diff: int, in_decimals: int, out_decimals: int):
    updated = dict(state)
    if diff == 0 or state['shares'] == 0:
        return updated

    spent_delta = floor_to_integer(mul_scalar(diff, state['in_supply']))
    released_delta = floor_to_integer(mul_scalar(diff, state['out_remaining']))

    updated['in_supply'] = state['in_supply'] - spent_delta
    updated['spent_in'] = state['spent_in'] + spent_delta
    updated['out_remaining'] = state['out_remaining'] - released_delta
    updated['dist_index'] = add(state['dist_index'], from_ratio(released_delta, state['shares']))

    # Marginal price is informational only; settlement never reads it back.
    if released_delta > 0:
        updated['current_price'] = from_ratio(
            normalize_amount(spent_delta, in_decimals),
            normalize_amount(released_delta, out_decimals)
        )
    return updated

@export
def tick(state: dict, timestamp: int, stream_start: int, stream_end: int, in_decimals: int, out_decimals: int):
    diff = time_diff(timestamp, stream_start, stream_end, state['last_updated'])
    updated = apply_diff(state, diff, in_decimals, out_decimals)
    updated['last_updated'] = timestamp
    return updated

# --- Shares ---
@export
def compute_shares(amount: int, direction: str, in_supply: int, total_shares: int):
    assert direction in [MINT, BURN], f'InvalidInput: unknown share direction {direction}.'
    if amount == 0 or total_shares == 0 or in_supply == 0:
        return amount

    product = amount * total_shares
    if direction == MINT:
        return product // in_supply
    # Burning rounds up so a withdrawal never takes more than its claim.
    return (product + in_supply - 1) // in_supply

# --- Positions ---
@export
def sync_position(position: dict, dist_index: int, total_shares: int, in_supply: int, timestamp: int):
    synced = dict(position)
    index_delta = sub(dist_index, position['index'])

    if position['shares'] > 0 and index_delta > 0:
        purchased_delta = floor_to_integer(mul_scalar(index_delta, position['shares']))
        synced['purchased'] = position['purchased'] + purchased_delta

    if total_shares > 0:
        # Share rounding on someone else's deposit can lift the floored value by
        # one unit, which is handed back out of spent_in. A sole holder's value
        # is then always the whole in_supply.
        in_balance = position['shares'] * in_supply // total_shares
        spent_delta = position['in_balance'] - in_balance
        synced['spent_in'] = position['spent_in'] + spent_delta
        synced['in_balance'] = in_balance

    synced['index'] = dist_index
    synced['last_update_time'] = timestamp
    return synced

# --- Fees ---
@export
def split_fee(amount: int, ratio: int):
    assert 0 <= ratio <= SCALE, 'InvalidInput: fee ratio must be within 0..1.'
    fee = floor_to_integer(mul_scalar(ratio, amount))
    return fee, amount - fee

# --- Time ---
@export
def to_timestamp(dt: Any):
    # Unix seconds for a contracting Datetime, counted in the proleptic Gregorian calendar.
    year = dt.year
    if dt.month <= 2:
        year -= 1
    era = year // 400
    year_of_era = year - era * 400
    day_of_year = (153 * ((dt.month + 9) % 12) + 2) // 5 + dt.day - 1
    day_of_era = year_of_era * 365 + year_of_era // 4 - year_of_era // 100 + day_of_year
    days = era * 146097 + day_of_era - 719468
    return days * 86400 + dt.hour * 3600 + dt.minute * 60 + dt.second
