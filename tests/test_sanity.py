"""Package sanity checks.

Confirms the package installs correctly and its public contract is intact.
These tests should always pass; a failure here means the build is broken.
"""

import ecobee_exporter


def test_version_is_declared() -> None:
    assert isinstance(ecobee_exporter.__version__, str)
    assert ecobee_exporter.__version__  # non-empty


def test_cli_app_is_importable() -> None:
    from ecobee_exporter.cli import app

    assert app is not None
