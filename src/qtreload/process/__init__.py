"""Supervision of spawned application and preview processes."""

from qtreload.process.preview import QmlPreview
from qtreload.process.supervisor import ApplicationSupervisor, SupervisedProcess

__all__ = ["ApplicationSupervisor", "QmlPreview", "SupervisedProcess"]
