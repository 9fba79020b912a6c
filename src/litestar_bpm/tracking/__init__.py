"""Trackers that reconcile engine state with the shadow store.

This module exports:
- LifecycleTracker: Start and terminate reconciliation
- StatusResolver: Live and historic status merge
- TaskLifecycleTracker: Claim and complete mirroring
- ProcessCatalog: Definition and active instance listings
"""

from __future__ import annotations

from litestar_bpm.tracking.catalog import ProcessCatalog
from litestar_bpm.tracking.lifecycle import LifecycleTracker
from litestar_bpm.tracking.status import StatusResolver
from litestar_bpm.tracking.tasks import TaskLifecycleTracker

__all__ = [
    "LifecycleTracker",
    "ProcessCatalog",
    "StatusResolver",
    "TaskLifecycleTracker",
]
