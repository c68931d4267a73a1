"""Pipeline modules.

- manager: Correction manager (setup and per-event loop)
- builder: Manager construction from the runtime configuration
- events: Event table input/output
- runner: One correction pass over an event table
"""

from flowcorr.pipeline.manager import CorrectionManager
from flowcorr.pipeline.builder import build_manager
from flowcorr.pipeline.runner import CorrectionRunner

__all__ = [
    "CorrectionManager",
    "build_manager",
    "CorrectionRunner",
]
