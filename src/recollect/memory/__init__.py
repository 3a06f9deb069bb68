"""
Memory module - tiered conversation memory.

Tiers:
- sensory: Fresh, low-importance fragments (expire after an hour)
- short_term: Moderately important fragments (demoted when weak)
- long_term: Important fragments
- archive: Demoted fragments (never injected, cleaned up after retention)

Pipeline: gather -> dedupe -> rank -> pack -> format
Storage: per-session JSON snapshots in SQLite
"""
