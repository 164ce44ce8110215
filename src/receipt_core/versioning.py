"""
Version compatibility checks between the app and imported spreadsheets.
"""

import logging
from typing import Optional, Tuple

from .config import AppConfig
from .models import VersionCheck, Workbook
from .settings import parse_settings

logger = logging.getLogger(__name__)


def _component(part: str) -> int:
    try:
        return int(part.strip())
    except ValueError:
        return 0


def parse_version(version: Optional[str]) -> Tuple[int, int, int]:
    """Parse ``major.minor.patch``; missing or non-numeric parts become 0."""
    parts = (version or "").split(".")
    parts += ["0"] * (3 - len(parts))
    return _component(parts[0]), _component(parts[1]), _component(parts[2])


def compare_versions(app_version: str, file_version: str) -> VersionCheck:
    """Classify the difference between the app version and a file's version."""
    app = parse_version(app_version)
    found = parse_version(file_version)

    if app == found:
        return VersionCheck(compatible=True, severity="same",
                            message="Versions match perfectly")
    if app[0] != found[0]:
        return VersionCheck(
            compatible=False, severity="major",
            message=(f"Major version mismatch: App v{app_version} vs File v{file_version}. "
                     "This may cause compatibility issues."))
    if app[1] != found[1]:
        return VersionCheck(
            compatible=False, severity="minor",
            message=(f"Minor version difference: App v{app_version} vs File v{file_version}. "
                     "Some features may not work as expected."))
    return VersionCheck(
        compatible=True, severity="patch",
        message=f"Patch version difference: App v{app_version} vs File v{file_version}. This should be fine.")


def should_warn(check: VersionCheck, config: Optional[AppConfig] = None) -> bool:
    """Whether the user must confirm before the file is used.

    Major differences always need confirmation (when enabled); minor ones only
    when minor warnings are switched on. Patch and same never do.
    """
    policy = (config or AppConfig()).version_check
    if not policy.enabled or check.compatible:
        return False
    if check.severity == "major":
        return policy.error_on_major_diff
    if check.severity == "minor":
        return policy.warn_on_minor_diff
    return False


def version_from_workbook(workbook: Workbook) -> Optional[str]:
    """Version recorded in the workbook's Settings sheet, if any."""
    return parse_settings(workbook).version


def check_workbook(workbook: Workbook, config: Optional[AppConfig] = None) -> Optional[VersionCheck]:
    """Compare a workbook against the running version.

    Returns None when the workbook records no version.
    """
    config = config or AppConfig()
    file_version = version_from_workbook(workbook)
    if file_version is None:
        logger.info("Workbook carries no version; skipping compatibility check")
        return None
    check = compare_versions(config.version, file_version)
    if check.severity != "same":
        logger.warning(check.message)
    return check
