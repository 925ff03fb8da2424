# con_stream_vesting.py
# Linear vesting schedules created by streams at settlement time.
I = importlib

vesting = Hash()
metadata = Hash()

token_interface = [
    I.Func('transfer_from', args=('amount', 'to', 'main_account')),
    I.Func('transfer', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
]

VestingCreated = LogEvent(
    event="vesting_created",
    params={
        "vesting_id": {'type': int, 'idx': False},
        "beneficiary": {'type': str, 'idx': True},
        "funder": {'type': str, 'idx': False},
        "token": {'type': str, 'idx': False},
        "amount": {'type': int},
        "start": {'type': int},
        "duration": {'type': int}
    })

VestingReleased = LogEvent(
    event="vesting_released",
    params={
        "vesting_id": {'type': int, 'idx': False},
        "beneficiary": {'type': str, 'idx': True},
        "amount": {'type': int}
    })

@construct
def seed():
    metadata['operator'] = ctx.caller
    metadata['math_contract'] = 'con_stream_math'
    metadata['vesting_count'] = 0

def current_time():
    return I.import_module(metadata['math_contract']).to_timestamp(dt=now)

@export
def create_vesting(beneficiary: str, token: str, amount: int, start: int, duration: int):
    assert amount > 0, 'InvalidInput: vesting amount must be positive.'
    assert duration > 0, 'InvalidInput: vesting duration must be positive.'

    token_contract = I.import_module(token)
    assert I.enforce_interface(token_contract, token_interface), 'InvalidInput: token contract not XSC001-compliant'

    # The funder (usually a stream contract) approved this contract beforehand.
    token_contract.transfer_from(amount=amount, to=ctx.this, main_account=ctx.caller)

    vesting_id = metadata['vesting_count'] + 1
    metadata['vesting_count'] = vesting_id
    vesting[vesting_id] = {
        "beneficiary": beneficiary,
        "funder": ctx.caller,
        "token": token,
        "amount": amount,
        "released": 0,
        "start": start,
        "duration": duration
    }

    VestingCreated({
        "vesting_id": vesting_id,
        "beneficiary": beneficiary,
        "funder": ctx.caller,
        "token": token,
        "amount": amount,
        "start": start,
        "duration": duration
    })
    return vesting_id

def vested_amount(schedule, timestamp):
    if timestamp <= schedule["start"]:
        return 0
    elapsed = timestamp - schedule["start"]
    if elapsed >= schedule["duration"]:
        return schedule["amount"]
    return schedule["amount"] * elapsed // schedule["duration"]

@export
def releasable(vesting_id: int):
    schedule = vesting[vesting_id]
    assert schedule, 'InvalidInput: vesting schedule does not exist.'
    return vested_amount(schedule, current_time()) - schedule["released"]

@export
def release(vesting_id: int):
    schedule = vesting[vesting_id]
    assert schedule, 'InvalidInput: vesting schedule does not exist.'
    assert ctx.caller == schedule["beneficiary"], 'Unauthorized: only the beneficiary can release.'

    amount = vested_amount(schedule, current_time()) - schedule["released"]
    assert amount > 0, 'InvalidInput: nothing to release yet.'

    schedule["released"] += amount
    vesting[vesting_id] = schedule

    I.import_module(schedule["token"]).transfer(amount=amount, to=schedule["beneficiary"])

    VestingReleased({
        "vesting_id": vesting_id,
        "beneficiary": schedule["beneficiary"],
        "amount": amount
    })
    return amount

@export
def get_vesting(vesting_id: int):
    return vesting[vesting_id]
