"""silentbuild: quiet, machine-readable build reporting.

Listens to a build orchestrator's lifecycle events, redirects the console
noise into a per-build log file, and reports only what matters as
``MSE:``-prefixed protocol lines:
  - module counts, outcome and elapsed time
  - failed build steps, with compiler diagnostics or failure text
  - test totals plus the first failing test cases from XML reports
  - where the full test output and build log live
"""

__version__ = "0.1.0"
__description__ = "Build-event aggregation and concise protocol reporting"

from silentbuild.config import SilentBuildSettings
from silentbuild.core.event_spy import SilentEventSpy

__all__ = ["SilentEventSpy", "SilentBuildSettings", "__version__"]
