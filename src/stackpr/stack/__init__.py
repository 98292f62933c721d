"""Stack reconciliation engine.

The stack is recomputed from commit history on every invocation; modules in
this package never persist it.
"""
