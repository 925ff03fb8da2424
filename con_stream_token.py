I = importlib

balances = Hash(default_value=0)
permits = Hash()
metadata = Hash()

@construct
def seed(supply: int, token_name: str, token_symbol: str):
    balances[ctx.caller] = supply
    metadata['token_name'] = token_name
    metadata['token_symbol'] = token_symbol
    metadata['total_supply'] = supply
    metadata['operator'] = ctx.caller
    metadata['math_contract'] = 'con_stream_math'

@export
def transfer(amount: int, to: str):
    assert amount > 0, 'Cannot transfer zero or negative!'
    sender = ctx.caller

    sender_bal = balances[sender]
    assert sender_bal >= amount, f'Transfer amount exceeds balance for sender {sender}!'

    balances[sender] = sender_bal - amount
    balances[to] += amount

@export
def approve(amount: int, to: str):
    assert amount >= 0, 'Cannot approve negative!' # Allow 0 for clearing approval
    balances[ctx.caller, to] = amount

@export
def transfer_from(amount: int, to: str, main_account: str):
    assert amount > 0, 'Cannot transfer zero or negative!'
    spender = ctx.caller

    allowance = balances[main_account, spender]
    assert allowance >= amount, \
        f'Transfer amount {amount} exceeds allowance {allowance} for {main_account} by spender {spender}!'

    main_account_bal = balances[main_account]
    assert main_account_bal >= amount, f'Transfer amount {amount} exceeds balance {main_account_bal} for main_account {main_account}!'

    balances[main_account, spender] = allowance - amount
    balances[main_account] = main_account_bal - amount
    balances[to] += amount

@export
def balance_of(address: str):
    return balances[address]

@export
def allowance(owner: str, spender: str):
    return balances[owner, spender]

# --- Signed approvals ---
def current_time():
    return I.import_module(metadata['math_contract']).to_timestamp(dt=now)

@export
def construct_permit_msg(owner: str, spender: str, value: int, deadline: int):
    return f'{owner}:{spender}:{value}:{deadline}:{ctx.this}'

@export
def permit(owner: str, spender: str, value: int, deadline: int, signature: str):
    permit_msg = construct_permit_msg(owner, spender, value, deadline)
    permit_hash = hashlib.sha3(permit_msg)

    assert permits[permit_hash] is None, 'Permit can only be used once.'
    assert current_time() < deadline, 'Permit has expired.'
    assert crypto.verify(owner, permit_msg, signature), 'Invalid signature.'

    balances[owner, spender] = value
    permits[permit_hash] = True
    return permit_hash
