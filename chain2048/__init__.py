"""
Chain2048 - On-chain 2048 sessions and leaderboard.

A deterministic 4x4 sliding-tile engine whose play sessions are bound to a
wallet identity and committed to a ledger:
- Pure board transitions (move, merge, spawn, terminal detection)
- Session open/close commitments, at most one close per session
- Leaderboard reconstructed from the ledger's score events, with a TTL cache
"""

__version__ = "0.1.0"
