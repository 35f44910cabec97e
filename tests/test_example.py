"""Package smoke tests."""

import gcloud_wif


def test_version():
    """Test that the package has a version."""
    assert hasattr(gcloud_wif, "__version__")
    assert isinstance(gcloud_wif.__version__, str)
    assert len(gcloud_wif.__version__) > 0


def test_import():
    """Test that the package can be imported."""
    assert gcloud_wif.Reconciler is not None
