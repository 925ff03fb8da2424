# con_malicious_reentrant_token.py
# XSC001 token that calls back into a stream from inside transfer_from, used to
# prove the stream's re-entrancy guard holds.
I = importlib

balances = Hash(default_value=0)
metadata = Hash()

re_entry_owner = Variable() # To control sensitive operations

# Re-entrancy specific state
re_entry_target_stream_name = Variable()
re_entry_deposit_amount = Variable()
re_entry_attempt_count = Variable()
re_entry_max_attempts = Variable() # To prevent infinite loops in complex scenarios

@construct
def seed(supply: int):
    balances[ctx.caller] = supply
    metadata['total_supply'] = supply
    re_entry_attempt_count.set(0)
    re_entry_max_attempts.set(1) # Only re-enter once
    re_entry_deposit_amount.set(0)
    re_entry_owner.set(ctx.caller)

@export
def configure_re_entrancy(stream_name: str, amount: int):
    assert ctx.caller == re_entry_owner.get(), "Only owner can configure re-entrancy."
    re_entry_target_stream_name.set(stream_name)
    re_entry_deposit_amount.set(amount)
    re_entry_attempt_count.set(0)

    # The token contract deposits on its own behalf, so it approves the stream for its own balance.
    if amount > 0 and stream_name:
        balances[ctx.this, stream_name] = amount

@export
def transfer(amount: int, to: str):
    assert amount > 0, "Transfer amount must be positive"
    sender = ctx.caller
    assert balances[sender] >= amount, f"Insufficient balance for sender {sender}"

    balances[sender] -= amount
    balances[to] += amount
    return True

@export
def approve(amount: int, to: str):
    assert amount >= 0, "Approve amount must be non-negative"
    balances[ctx.caller, to] = amount
    return True

@export
def transfer_from(amount: int, to: str, main_account: str):
    assert amount > 0, "Transfer amount must be positive"
    spender = ctx.caller

    assert balances[main_account] >= amount, f"Insufficient balance for owner {main_account}"
    assert balances[main_account, spender] >= amount, \
        f"Insufficient allowance for spender {spender} from owner {main_account}"

    balances[main_account] -= amount
    balances[main_account, spender] -= amount
    balances[to] += amount

    # --- RE-ENTRANCY LOGIC ---
    current_attempts = re_entry_attempt_count.get()
    target_stream_name = re_entry_target_stream_name.get()
    re_deposit_amount = re_entry_deposit_amount.get()

    if current_attempts < re_entry_max_attempts.get() and target_stream_name and re_deposit_amount > 0:
        re_entry_attempt_count.set(current_attempts + 1)
        # ctx.caller for the nested deposit is this token contract.
        I.import_module(target_stream_name).deposit(amount=re_deposit_amount, proof=[])

    return True

@export
def balance_of(address: str):
    return balances[address]
