"""Tests for exporter configuration and the HTTP metrics endpoint."""

import json
from unittest.mock import MagicMock

import pydantic
import pytest
from starlette.testclient import TestClient

from slurm_partition_exporter import server, slurmcli


@pytest.fixture
def mock_client() -> MagicMock:
    """Mock SlurmCliClient with a single idle partition."""
    client = MagicMock(spec=slurmcli.SlurmCliClient)
    client.sinfo_command = "sinfo"
    client.squeue_command = "squeue"
    client.read_partition_state.return_value = "gpu,4,16,idle\n"
    client.read_jobs_by_state.return_value = ""
    return client


@pytest.fixture
def config_file(tmp_path):
    """Write a config file and return its path."""

    def write(data: dict) -> str:
        path = tmp_path / "config.json"
        path.write_text(json.dumps(data))
        return str(path)

    return write


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def test_load_config_defaults(config_file):
    """An empty config file yields the documented defaults."""
    config = server.load_config(config_file({}))

    assert config.sinfo_command == "sinfo"
    assert config.squeue_command == "squeue"
    assert config.command_timeout == slurmcli.DEFAULT_TIMEOUT
    assert config.port == 9092
    assert config.metrics_path == "/metrics"
    assert config.log_level == "INFO"


def test_load_config_overrides(config_file):
    """Values from the file override defaults."""
    config = server.load_config(
        config_file(
            {
                "sinfo_command": "/opt/slurm/bin/sinfo",
                "command_timeout": 5,
                "metrics_path": "/slurm",
            },
        ),
    )

    assert config.sinfo_command == "/opt/slurm/bin/sinfo"
    assert config.command_timeout == 5.0
    assert config.metrics_path == "/slurm"


def test_load_config_missing_file(tmp_path):
    """A missing config file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError, match="Configuration file not found"):
        server.load_config(str(tmp_path / "absent.json"))


def test_load_config_rejects_non_object(tmp_path):
    """A JSON document that is not an object is rejected."""
    path = tmp_path / "config.json"
    path.write_text("[]")
    with pytest.raises(ValueError, match="JSON object"):
        server.load_config(str(path))


@pytest.mark.parametrize(
    "data",
    [
        {"command_timeout": 0},
        {"port": 70000},
        {"sinfo_command": ""},
    ],
)
def test_load_config_rejects_invalid_values(config_file, data: dict):
    """Out-of-range values fail validation."""
    with pytest.raises(pydantic.ValidationError):
        server.load_config(config_file(data))


# ---------------------------------------------------------------------------
# Registry and HTTP endpoint
# ---------------------------------------------------------------------------


def test_registry_exposes_partition_metrics(mock_client: MagicMock):
    """The registry serves partition gauges from the injected client."""
    registry = server.create_registry_with_collectors(mock_client)

    assert registry.get_sample_value(
        "slurm_partition_nodes_idle",
        {"partition": "gpu"},
    ) == 4
    assert registry.get_sample_value(
        "slurm_partition_cpus_idle",
        {"partition": "gpu"},
    ) == 64


def test_metrics_endpoint(mock_client: MagicMock):
    """The metrics path returns Prometheus text output."""
    registry = server.create_registry_with_collectors(mock_client)
    app = server.create_starlette_app("/metrics", registry)

    response = TestClient(app).get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'slurm_partition_nodes_idle{partition="gpu"} 4.0' in response.text
    assert "slurm_partition_scrape_error_total 0.0" in response.text


def test_metrics_endpoint_on_command_failure(mock_client: MagicMock):
    """A failed scrape still answers, with error metadata and no partitions."""
    mock_client.read_partition_state.side_effect = slurmcli.SlurmCommandExitError(
        ["sinfo"], 1, ""
    )
    registry = server.create_registry_with_collectors(mock_client)
    app = server.create_starlette_app("/metrics", registry)

    response = TestClient(app).get("/metrics")

    assert response.status_code == 200
    assert "slurm_partition_scrape_error_total 1.0" in response.text
    assert 'partition="gpu"' not in response.text


def test_other_paths_not_found(mock_client: MagicMock):
    """Only the configured metrics path is served."""
    registry = server.create_registry_with_collectors(mock_client)
    app = server.create_starlette_app("/metrics", registry)

    response = TestClient(app).get("/other")

    assert response.status_code == 404


def test_create_app_from_environment(config_file, monkeypatch):
    """create_app reads the config path from the environment."""
    monkeypatch.setenv(server.CONFIG_ENV_VAR, config_file({"metrics_path": "/m"}))

    app = server.create_app()

    paths = [route.path for route in app.routes]
    assert paths == ["/m"]
