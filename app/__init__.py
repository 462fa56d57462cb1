"""
App Module: Application layer for the assignment bot
- unified_pipeline: per-message controller with the ordered dispatch contract
- router: role-gated command router
- teacher_handlers / student_handlers: the two role handler surfaces
"""

from .router import CommandRouter
from .unified_pipeline import UnifiedPipelineController, create_unified_pipeline

__all__ = [
    'CommandRouter',
    'UnifiedPipelineController',
    'create_unified_pipeline',
]
