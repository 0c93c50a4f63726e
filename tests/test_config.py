import pytest
from pathlib import Path

from sitesync.config.settings import ConfigurationError, Settings, load_settings


@pytest.fixture
def mock_env(monkeypatch, tmp_path):
    """Environment for a CI run, isolated from any local .env file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SITESYNC_BUCKET", "www.example.com/docs")
    monkeypatch.setenv("SITESYNC_DISTRIBUTION_ID", "E2EXAMPLE")
    monkeypatch.setenv("SITESYNC_MAX_WORKERS", "12")
    monkeypatch.setenv("SITESYNC_EXCLUDE", ".git, *.map")
    monkeypatch.setenv("SITESYNC_DELETE", "true")


def test_load_settings_success(mock_env):
    """Test loading settings with valid environment variables."""
    settings = load_settings()

    assert isinstance(settings, Settings)
    assert settings.sync.bucket == "www.example.com/docs"
    assert settings.sync.max_workers == 12
    assert settings.sync.exclude == (".git", "*.map")
    assert settings.sync.delete is True
    assert settings.sync.dry_run is False
    assert settings.cdn.distribution_id == "E2EXAMPLE"


def test_defaults(monkeypatch, tmp_path):
    """Test that nothing is required from the environment."""
    monkeypatch.chdir(tmp_path)
    settings = load_settings()

    assert settings.sync.bucket is None
    assert settings.sync.max_workers == 8
    assert settings.sync.max_retries == 3
    assert settings.cdn.wildcard_threshold == 500


def test_invalid_worker_count(mock_env, monkeypatch):
    """Test error when the worker pool size is out of range."""
    monkeypatch.setenv("SITESYNC_MAX_WORKERS", "0")

    with pytest.raises(ConfigurationError, match="SITESYNC_MAX_WORKERS"):
        load_settings()


def test_non_numeric_value(mock_env, monkeypatch):
    monkeypatch.setenv("SITESYNC_MAX_RETRIES", "lots")

    with pytest.raises(ConfigurationError, match="Failed to load configuration"):
        load_settings()


def test_invalid_endpoint_url(mock_env, monkeypatch):
    monkeypatch.setenv("SITESYNC_ENDPOINT_URL", "minio:9000")

    with pytest.raises(ConfigurationError, match="http"):
        load_settings()


def test_env_file(monkeypatch, tmp_path):
    """Test that .env values load but real env vars take precedence."""
    monkeypatch.chdir(tmp_path)
    env_file = tmp_path / "deploy.env"
    env_file.write_text(
        "# deploy settings\n"
        "SITESYNC_BUCKET=\"from-file\"\n"
        "SITESYNC_DISTRIBUTION_ID='EFILE'\n"
    )
    monkeypatch.setenv("SITESYNC_DISTRIBUTION_ID", "EENV")
    # load_settings writes into os.environ; let monkeypatch undo it
    monkeypatch.setenv("SITESYNC_BUCKET", "")
    monkeypatch.delenv("SITESYNC_BUCKET")

    settings = load_settings(env_file=env_file)

    assert settings.sync.bucket == "from-file"
    assert settings.cdn.distribution_id == "EENV"


def test_missing_env_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ConfigurationError, match="not found"):
        load_settings(env_file=Path(tmp_path / "nope.env"))


def test_repr_masks_identifiers(mock_env):
    settings = load_settings()

    assert "www.example.com" not in repr(settings)
    assert "E2EXAMPLE" not in repr(settings)


def test_wildcard_threshold_capped(mock_env, monkeypatch):
    """Test that the threshold cannot exceed CloudFront's batch limit."""
    monkeypatch.setenv("SITESYNC_WILDCARD_THRESHOLD", "3001")

    with pytest.raises(ConfigurationError, match="at most 3000"):
        load_settings()

    monkeypatch.setenv("SITESYNC_WILDCARD_THRESHOLD", "3000")
    assert load_settings().cdn.wildcard_threshold == 3000
