"""
replaydash - client engine for the replay analytics dashboard.

Resolves SQL template variables, schedules debounced widget previews against
the dashboard backend, and turns query results into chart rendering contracts.
"""

__version__ = "0.1.0"
