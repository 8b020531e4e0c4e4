"""
Per-request metrics for invoice parsing, logged when a parse finishes.
"""
import time
from typing import Dict, Any, List
from datetime import datetime


class ParseMetrics:
    """Track metrics for one parse request."""

    def __init__(self):
        self.start_time = time.time()
        self.end_time = None
        self.stages: Dict[str, float] = {}
        self.llm_calls = 0
        self.documents = 0
        self.failures = 0
        self.persisted = 0
        self.errors: List[str] = []

    def mark_stage(self, stage_name: str):
        """Mark completion of a stage."""
        self.stages[stage_name] = time.time()

    def finish(self):
        """Mark request as finished."""
        self.end_time = time.time()

    def add_llm_call(self):
        self.llm_calls += 1

    def add_document(self, failed: bool = False, error: str = None):
        """Record a produced document."""
        self.documents += 1
        if failed:
            self.failures += 1
            if error:
                self.errors.append(error)

    def add_persisted(self):
        self.persisted += 1

    def duration(self) -> float:
        """Get total duration in seconds."""
        if self.end_time:
            return self.end_time - self.start_time
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dict."""
        return {
            "duration_seconds": round(self.duration(), 3),
            "llm_calls": self.llm_calls,
            "documents": self.documents,
            "failures": self.failures,
            "persisted": self.persisted,
            "stages": {k: round(v - self.start_time, 3) for k, v in self.stages.items()},
            "errors": self.errors,
            "start_time": datetime.fromtimestamp(self.start_time).isoformat(),
            "end_time": datetime.fromtimestamp(self.end_time).isoformat() if self.end_time else None
        }
