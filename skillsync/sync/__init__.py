"""Reconciliation engine — the layer that keeps skill projections aligned with canonical.

This package provides the primitives for:
- Hashing: deterministic fingerprints of a skill's full state
- Merging: field-categorized metadata propagation from canonical to platforms
- Drift detection: detecting divergence between a projection and canonical
- Resolution: legal actions per mismatch and their application
- Consolidation: gathering dependent files into the canonical store
"""
