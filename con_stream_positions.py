# con_stream_positions.py
# Key-value store of participant positions for a single stream.
positions = Hash(default_value=None)
metadata = Hash()

@construct
def seed(stream: str):
    metadata['operator'] = ctx.caller
    metadata['stream'] = stream

def empty_position():
    return {
        "in_balance": 0,
        "shares": 0,
        "index": 0,
        "spent_in": 0,
        "purchased": 0,
        "last_update_time": 0,
        "exit_date": 0
    }

@export
def get_position(account: str):
    position = positions[account]
    if position is None:
        return empty_position()
    return position

@export
def set_position(account: str, position: dict):
    assert ctx.caller == metadata['stream'], 'Unauthorized: only the owning stream can write positions.'
    positions[account] = position

@export
def has_position(account: str):
    return positions[account] is not None
