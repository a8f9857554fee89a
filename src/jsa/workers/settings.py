"""arq worker settings module.

Import path for arq CLI: arq jsa.workers.settings.WorkerSettings
"""

from __future__ import annotations

from jsa.workers.scheduler import WorkerSettings

__all__ = ["WorkerSettings"]
