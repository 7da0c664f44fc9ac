"""Worker module exports.

``workers.tasks`` is imported by rq through its dotted path.
"""

from .scheduler import TraversalScheduler, build_scheduler, calculate_next_due

__all__ = ["TraversalScheduler", "build_scheduler", "calculate_next_due"]
