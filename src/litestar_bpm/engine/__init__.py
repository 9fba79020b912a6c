"""Engine gateway implementations for litestar-bpm.

This module exports the concrete :class:`~litestar_bpm.core.protocols.EngineGateway`
implementations:
- InMemoryEngine: In-process engine for development and testing
- CamundaRestGateway: Client for the Camunda 7 REST API
"""

from __future__ import annotations

from litestar_bpm.engine.camunda import CamundaRestGateway
from litestar_bpm.engine.memory import Comment, InMemoryEngine

__all__ = [
    "CamundaRestGateway",
    "Comment",
    "InMemoryEngine",
]
