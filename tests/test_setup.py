"""Test that the project setup is working correctly."""

import alert_receivers


def test_version() -> None:
    """Test that version is defined."""
    assert alert_receivers.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from alert_receivers import config, models, receivers, sender, templates
    from alert_receivers.receivers import dingding

    # Just verify imports work
    assert config is not None
    assert models is not None
    assert receivers is not None
    assert sender is not None
    assert templates is not None
    assert dingding is not None
