"""pgreport - mirror test-run lifecycles into PostgreSQL."""

from .config import ReportingSettings
from .context import ReportingContext, should_report
from .custom_fields import CustomFieldStore, ReportingLink
from .exceptions import ReportingError
from .listener import ListenerState, Phase, ReportingListener, TestOutcome
from .params import parse_value_param
from .storage import ConnectionManager, ExecStatus, ResultHandle, get_connection_manager
from .version import __version__
from .xml_normalizer import normalize_model_xml


__all__ = [
    "__version__",
    # Bootstrap
    "ReportingContext",
    "ReportingSettings",
    "should_report",
    # Listener
    "ListenerState",
    "Phase",
    "ReportingListener",
    "TestOutcome",
    # Custom fields
    "CustomFieldStore",
    "ReportingLink",
    # Storage
    "ConnectionManager",
    "ExecStatus",
    "ResultHandle",
    "get_connection_manager",
    # Helpers
    "normalize_model_xml",
    "parse_value_param",
    "ReportingError",
]
