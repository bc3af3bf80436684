"""
Operations Layer

Pure business rules applied to snapshots. Nothing here performs I/O:

- UpdateDecisionPolicy: whether a freshly fetched sample should be stored
- compare_snapshots: per-skill changes between two snapshots
"""
