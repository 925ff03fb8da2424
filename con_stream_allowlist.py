# con_stream_allowlist.py
# Merkle allow-list verification. Leaves are sha3(account); parents hash the
# two children concatenated in sorted order, so proofs carry no left/right flags.

@export
def leaf_hash(account: str):
    return hashlib.sha3(account)

@export
def pair_hash(a: str, b: str):
    if a <= b:
        return hashlib.sha3(a + b)
    return hashlib.sha3(b + a)

@export
def compute_root(proof: list, account: str):
    computed = leaf_hash(account)
    for sibling in proof:
        computed = pair_hash(computed, sibling)
    return computed

@export
def verify(proof: list, root: str, account: str):
    if not root:
        return False
    return compute_root(proof, account) == root
