"""
SpendSync - Source Package

Data-sync and derived-metrics layer of a personal finance tracker client.

DESIGN PRINCIPLES:
1. The server is the source of truth; the cache only mirrors it
2. Fail early, fail visibly
3. No silent corrections
4. Every write and its cache side effects are auditable
5. Reads never leave their account
"""

__version__ = "1.0.0"
__author__ = "SpendSync Team"
