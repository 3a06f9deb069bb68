"""
Injection module - delivers the formatted memory payload to the host.

Components:
- coordinator: Per-turn gather/pack/format/deliver pipeline and counters
- targets: Fallback chain over the host's injection methods
"""
