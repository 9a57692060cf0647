"""
Module management feature.

Licensable feature areas, their dependency graph, and per-school activation.
"""
