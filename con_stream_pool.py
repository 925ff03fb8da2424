# con_stream_pool.py
# Receives post-stream liquidity: both sides are pulled from the caller and
# booked as reserves of the (token_a, token_b) pair.
I = importlib

reserves = Hash(default_value=0)
liquidity = Hash(default_value=0)
metadata = Hash()

token_interface = [
    I.Func('transfer_from', args=('amount', 'to', 'main_account')),
    I.Func('transfer', args=('amount', 'to')),
    I.Func('balance_of', args=('address',)),
]

LiquidityAdded = LogEvent(
    event="liquidity_added",
    params={
        "token_a": {'type': str, 'idx': True},
        "token_b": {'type': str, 'idx': True},
        "provider": {'type': str, 'idx': True},
        "amount_a": {'type': int},
        "amount_b": {'type': int}
    })

@construct
def seed():
    metadata['operator'] = ctx.caller

@export
def add_liquidity(token_a: str, token_b: str, amount_a: int, amount_b: int, provider: str):
    assert token_a != token_b, 'InvalidInput: pool needs two distinct tokens.'
    assert amount_a > 0 and amount_b > 0, 'InvalidInput: both liquidity amounts must be positive.'

    contract_a = I.import_module(token_a)
    contract_b = I.import_module(token_b)
    assert I.enforce_interface(contract_a, token_interface), 'InvalidInput: token_a contract not XSC001-compliant'
    assert I.enforce_interface(contract_b, token_interface), 'InvalidInput: token_b contract not XSC001-compliant'

    contract_a.transfer_from(amount=amount_a, to=ctx.this, main_account=ctx.caller)
    contract_b.transfer_from(amount=amount_b, to=ctx.this, main_account=ctx.caller)

    reserves[token_a, token_b, token_a] += amount_a
    reserves[token_a, token_b, token_b] += amount_b
    # Provider credit is measured in units of token_a deposited.
    liquidity[token_a, token_b, provider] += amount_a

    LiquidityAdded({
        "token_a": token_a,
        "token_b": token_b,
        "provider": provider,
        "amount_a": amount_a,
        "amount_b": amount_b
    })

@export
def get_pool(token_a: str, token_b: str):
    return {
        "reserve_a": reserves[token_a, token_b, token_a],
        "reserve_b": reserves[token_a, token_b, token_b]
    }
