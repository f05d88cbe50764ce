"""actions-sentinel: audit CI workflow health and disable chronically failing workflows."""

from .analyzer import WorkflowAnalyzer
from .audit import AuditLogEntry, AuditLogger
from .classifier import FailureClassifier
from .config import SentinelConfig, load_config, validate_config
from .detection import IssueDetector, get_detector
from .lifecycle import WorkflowLifecycleManager, get_manifest_store
from .metrics import compute_metrics
from .models import AnalysisReport, RepositoryAnalysis, Run, WorkflowAnalysis
from .sources import get_data_source

__version__ = "0.1.0"
__all__ = [
    "AnalysisReport",
    "AuditLogEntry",
    "AuditLogger",
    "FailureClassifier",
    "IssueDetector",
    "RepositoryAnalysis",
    "Run",
    "SentinelConfig",
    "WorkflowAnalysis",
    "WorkflowAnalyzer",
    "WorkflowLifecycleManager",
    "compute_metrics",
    "get_data_source",
    "get_detector",
    "get_manifest_store",
    "load_config",
    "validate_config",
]
