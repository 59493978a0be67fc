"""Interactive scenario editing.

Reversible commands with linear undo/redo, optimistic application,
debounced persistence with retry and backoff, and live satisfaction
analytics.
"""
