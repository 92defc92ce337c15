"""Rules engine: pieces, boards, turns, attacks, match state and liveness.

Everything in this package is plain Python with no Flask imports so it can
run inside a client process as well as in tests. Timestamps are integer
milliseconds and every time-dependent function takes ``now`` explicitly.
"""
