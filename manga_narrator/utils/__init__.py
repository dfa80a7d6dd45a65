"""
Utility modules for Manga Narrator
"""
from .logging import log_error, print_error, print_warning
from .timing import (
    log_workflow_step_start,
    log_workflow_step_end,
    record_analysis_timing,
    save_workflow_timing_log,
    get_workflow_timing_summary,
    reset_workflow_timing,
)

__all__ = [
    "log_error",
    "print_error",
    "print_warning",
    "log_workflow_step_start",
    "log_workflow_step_end",
    "record_analysis_timing",
    "save_workflow_timing_log",
    "get_workflow_timing_summary",
    "reset_workflow_timing",
]
