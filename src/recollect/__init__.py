"""
Recollect - tiered conversation memory with budgeted prompt injection.

Package structure:
- core: Config, logging, errors, clock, scheduler, event channel
- memory: Tier store, dedup/ranking, packing, formatting, sessions, maintenance
- injection: Injection coordinator and target fallback chain
- service: Wiring of collaborators and event handlers
"""

__version__ = "0.1.0"
