"""
Preview engine services.

Variable bindings, SQL template variable extraction, debounced preview
scheduling and the editor/dashboard sessions built on them.
"""
