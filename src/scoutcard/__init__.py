"""`scoutcard` - multi-pass counting, alerting and trends for sticky-card
and plug-tray scans.

Subpackages:
- analysis: Aggregation, classification, trends, germination
- oracle: Counting oracle interface and failure taxonomy
- pipeline: Concurrent fan-out, scan pipeline, record store
- schemas: Layered pydantic configuration
- contracts: Fail-fast stage invariants
- cli: Report commands
"""

__version__ = "0.1.0"
