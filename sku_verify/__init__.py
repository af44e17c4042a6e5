"""
SKU Migration Verifier - reconcile legacy and migrated SKU tables per tenant.
"""

__version__ = "1.0.0"

from .config.manager import ConfigManager, ConfigurationError, VerifierConfig
from .adapters.connection import DuckDBExecutor, TenantConnector
from .core.models import TenantVerificationResult
from .orchestrator import VerificationOrchestrator, RunReport
from .reporting import HtmlReportGenerator
from .ui.progress import get_progress_monitor
from .utils.logger import get_logger

__all__ = [
    "ConfigManager",
    "ConfigurationError",
    "VerifierConfig",
    "DuckDBExecutor",
    "TenantConnector",
    "TenantVerificationResult",
    "VerificationOrchestrator",
    "RunReport",
    "HtmlReportGenerator",
    "get_progress_monitor",
    "get_logger",
]
