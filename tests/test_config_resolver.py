"""Tests for configuration resolution."""

import logging

import pytest

from matrix_orchestrator.config.providers import ConfigProvider
from matrix_orchestrator.config.resolver import ConfigResolver, parse_bool, resolve_azure_context
from matrix_orchestrator.errors import ConfigError
from matrix_orchestrator.models import MatrixCell


class DictProvider(ConfigProvider):
    def __init__(self, values):
        self.values = values
        self.calls = []

    def get(self, key):
        self.calls.append(key)
        return self.values.get(key)


class FailingProvider(ConfigProvider):
    def get(self, key):
        raise ConnectionError("config store unreachable")


class TestResolveMatrix:
    """Tests for resolve_matrix."""

    def test_cross_product_is_environment_major(self):
        """Test that cells are ordered by environment, then platform."""
        resolver = ConfigResolver(environ={"TEST_ENVIRONMENTS": "qa,prod", "TEST_PLATFORMS": "web"})

        assert resolver.resolve_matrix() == [
            MatrixCell("qa", "web"),
            MatrixCell("prod", "web"),
        ]

    def test_size_is_product_of_lists(self):
        """Test that the matrix has one cell per environment and platform pair."""
        resolver = ConfigResolver(environ={"TEST_ENVIRONMENTS": "a, b ,c", "TEST_PLATFORMS": "x,y"})

        matrix = resolver.resolve_matrix()

        assert len(matrix) == 6
        assert matrix[0] == MatrixCell("a", "x")
        assert matrix[1] == MatrixCell("a", "y")
        assert matrix[-1] == MatrixCell("c", "y")

    def test_primary_source_wins_over_environment(self):
        """Test that the primary source takes precedence over environment variables."""
        primary = DictProvider({
            "TestMatrix:Environments": "stage",
            "TestMatrix:Platforms": "mobile,web",
        })
        resolver = ConfigResolver(primary, environ={"TEST_ENVIRONMENTS": "prod", "TEST_PLATFORMS": "web"})

        assert resolver.resolve_matrix() == [
            MatrixCell("stage", "mobile"),
            MatrixCell("stage", "web"),
        ]

    def test_empty_primary_value_falls_back_to_environment(self):
        """Test that a blank primary value counts as absent."""
        primary = DictProvider({"TestMatrix:Environments": " , ", "TestMatrix:Platforms": ""})
        resolver = ConfigResolver(primary, environ={"TEST_ENVIRONMENTS": "qa", "TEST_PLATFORMS": "web"})

        assert resolver.resolve_matrix() == [MatrixCell("qa", "web")]

    def test_unreachable_primary_falls_back_to_environment(self, caplog):
        """Test that a failing primary source is logged and skipped."""
        resolver = ConfigResolver(FailingProvider(), environ={"TEST_ENVIRONMENTS": "qa", "TEST_PLATFORMS": "web"})

        with caplog.at_level(logging.WARNING):
            matrix = resolver.resolve_matrix()

        assert matrix == [MatrixCell("qa", "web")]
        assert "config store unreachable" in caplog.text

    def test_defaults_when_nothing_configured(self):
        """Test the default environments and platforms."""
        resolver = ConfigResolver(environ={})

        matrix = resolver.resolve_matrix()

        assert len(matrix) == 6
        assert matrix[0] == MatrixCell("prod", "web")
        assert matrix[1] == MatrixCell("prod", "mobile")
        assert {c.environment for c in matrix} == {"prod", "stage", "qa"}


class TestResolveResourceConfig:
    """Tests for resolve_resource_config."""

    def test_defaults(self):
        """Test the default resource configuration."""
        resolver = ConfigResolver(environ={})

        config = resolver.resolve_resource_config()

        assert config.image is None
        assert config.cpu_units == 1.0
        assert config.memory_gib == 2.0
        assert config.container_name == "test-executor"
        assert config.network is not None
        assert config.network.vnet_name == "automation-resources-vnet"
        assert config.passthrough_env is None

    def test_each_field_falls_back_independently(self):
        """Test that each resource field is resolved on its own."""
        primary = DictProvider({"Container:CPU": "0.5"})
        resolver = ConfigResolver(primary, environ={
            "CONTAINER_IMAGE": "registry.io/runner:42",
            "CONTAINER_CPU": "4",
            "CONTAINER_MEMORY_GB": "1.5",
        })

        config = resolver.resolve_resource_config()

        assert config.image == "registry.io/runner:42"
        assert config.cpu_units == 0.5
        assert config.memory_gib == 1.5

    def test_invalid_number_treated_as_absent(self):
        """Test that unparseable or NaN numbers fall back to the defaults."""
        resolver = ConfigResolver(environ={"CONTAINER_CPU": "lots", "CONTAINER_MEMORY_GB": "nan"})

        config = resolver.resolve_resource_config()

        assert config.cpu_units == 1.0
        assert config.memory_gib == 2.0

    def test_numbers_must_be_plain_ascii(self):
        """Test that underscored and non-ASCII digits are treated as absent."""
        resolver = ConfigResolver(environ={"CONTAINER_CPU": "1_5", "CONTAINER_MEMORY_GB": "\u0663"})

        config = resolver.resolve_resource_config()

        assert config.cpu_units == 1.0
        assert config.memory_gib == 2.0

    def test_network_omitted_when_disabled(self):
        """Test that no network intent is attached when networking is disabled."""
        resolver = ConfigResolver(environ={"NETWORK_ENABLED": "no"})

        assert resolver.resolve_resource_config().network is None

    def test_network_intent_fields(self):
        """Test resolving every network intent field."""
        resolver = ConfigResolver(environ={
            "NETWORK_VNET_NAME": "corp-vnet",
            "NETWORK_SUBNET_NAME": "runners",
            "NETWORK_INTERNAL_ONLY": "Y",
        })

        network = resolver.resolve_network_intent()

        assert network.enabled is True
        assert network.vnet_name == "corp-vnet"
        assert network.subnet_name == "runners"
        assert network.subnet_resource_id is None
        assert network.internal_only is True


class TestResolveJobId:
    """Tests for resolve_job_id."""

    def test_from_primary(self):
        """Test reading the job name from the primary source."""
        resolver = ConfigResolver(DictProvider({"ContainerApps:JobName": " runner-job "}), environ={})
        assert resolver.resolve_job_id() == "runner-job"

    def test_from_environment(self):
        """Test reading the job name from the environment."""
        resolver = ConfigResolver(DictProvider({}), environ={"CONTAINERAPPS_JOB_NAME": "env-job"})
        assert resolver.resolve_job_id() == "env-job"

    def test_primary_failure_still_uses_environment(self):
        """Test that a failing primary source does not hide the environment value."""
        resolver = ConfigResolver(FailingProvider(), environ={"CONTAINERAPPS_JOB_NAME": "env-job"})
        assert resolver.resolve_job_id() == "env-job"

    def test_missing_everywhere_raises(self):
        """Test that a job name missing from every source raises ConfigError."""
        resolver = ConfigResolver(DictProvider({}), environ={})

        with pytest.raises(ConfigError, match="CONTAINERAPPS_JOB_NAME"):
            resolver.resolve_job_id()


class TestResolveConcurrencyLimit:
    """Tests for resolve_concurrency_limit."""

    @pytest.mark.parametrize("raw,expected", [("0", 1), ("100", 25), ("12", 12), ("-3", 1)])
    def test_clamps_into_bounds(self, raw, expected):
        """Test clamping the concurrency limit into [1, 25]."""
        resolver = ConfigResolver(environ={"ORCH_CONCURRENCY_LIMIT": raw})
        assert resolver.resolve_concurrency_limit() == expected

    def test_default(self):
        """Test the default concurrency limit and clamping of the caller default."""
        assert ConfigResolver(environ={}).resolve_concurrency_limit() == 10
        assert ConfigResolver(environ={}).resolve_concurrency_limit(40) == 25

    def test_non_numeric_falls_through(self):
        """Test that a non-numeric limit falls through to the next source."""
        primary = DictProvider({"Orchestration:ConcurrencyLimit": "many"})
        resolver = ConfigResolver(primary, environ={"ORCH_CONCURRENCY_LIMIT": "7"})
        assert resolver.resolve_concurrency_limit() == 7

        resolver = ConfigResolver(environ={"ORCH_CONCURRENCY_LIMIT": "many"})
        assert resolver.resolve_concurrency_limit(3) == 3

    @pytest.mark.parametrize("raw", ["1_0", "\u0661\u0662", "12.5", "0x10"])
    def test_only_ascii_integers_accepted(self, raw):
        """Test that non-integer spellings fall back to the default limit."""
        resolver = ConfigResolver(environ={"ORCH_CONCURRENCY_LIMIT": raw})
        assert resolver.resolve_concurrency_limit() == 10


class TestResolvePassthroughEnv:
    """Tests for resolve_passthrough_env."""

    ENDPOINT = "https://orchestrator.azconfig.io"

    def _resolver(self, raw, endpoint=ENDPOINT):
        environ = {"RUNNER_ENV_PASSTHROUGH": raw}
        if endpoint:
            environ["APP_CONFIG_ENDPOINT"] = endpoint
        return ConfigResolver(environ=environ)

    def test_injects_endpoint_when_missing(self, caplog):
        """Test injecting the App Configuration endpoint into the passthrough map."""
        with caplog.at_level(logging.WARNING):
            env = self._resolver('{"PW_WORKERS": "5"}').resolve_passthrough_env()

        assert env == {"PW_WORKERS": "5", "APP_CONFIG_ENDPOINT": self.ENDPOINT}
        assert "injecting" in caplog.text

    def test_overrides_different_endpoint(self, caplog):
        """Test overriding a passthrough endpoint that differs from ours."""
        with caplog.at_level(logging.WARNING):
            env = self._resolver('{"APP_CONFIG_ENDPOINT": "https://other.io"}').resolve_passthrough_env()

        assert env["APP_CONFIG_ENDPOINT"] == self.ENDPOINT
        assert "overriding" in caplog.text

    def test_no_endpoint_no_injection(self):
        """Test that nothing is injected without an endpoint."""
        env = self._resolver('{"SUITE": "smoke"}', endpoint=None).resolve_passthrough_env()
        assert env == {"SUITE": "smoke"}

    def test_reserved_and_invalid_keys_dropped(self, caplog):
        """Test dropping reserved and invalid passthrough keys with warnings."""
        raw = '{"ENV": "x", "PLATFORM": "y", "RUN_ID": "z", "ENV_LABEL": "w", "1BAD": "v", "my-key": "u", "OK": "t"}'

        with caplog.at_level(logging.WARNING):
            env = self._resolver(raw, endpoint=None).resolve_passthrough_env()

        assert env == {"OK": "t"}
        assert "'ENV' is reserved" in caplog.text
        assert "invalid env var key '1BAD'" in caplog.text

    def test_keys_with_trailing_newline_dropped(self, caplog):
        """Test that a key followed by a newline is rejected, not matched by prefix."""
        raw = '{"FOO\\n": "x", "ENV\\n": "hacked", "OK": "t"}'

        with caplog.at_level(logging.WARNING):
            env = self._resolver(raw, endpoint=None).resolve_passthrough_env()

        assert env == {"OK": "t"}
        assert "invalid env var key" in caplog.text

    def test_values_are_stringified(self):
        """Test converting non-string passthrough values to strings."""
        env = self._resolver('{"A": 5, "B": true, "C": null, "D": "text"}', endpoint=None).resolve_passthrough_env()
        assert env == {"A": "5", "B": "true", "C": "", "D": "text"}

    def test_invalid_json_raises(self):
        """Test that malformed passthrough JSON raises ConfigError."""
        with pytest.raises(ConfigError, match="valid JSON"):
            self._resolver('{not json').resolve_passthrough_env()

    def test_non_object_raises(self):
        """Test that a passthrough value that is not an object raises ConfigError."""
        with pytest.raises(ConfigError, match="JSON object"):
            self._resolver('["A", "B"]').resolve_passthrough_env()

    def test_primary_source_payload(self):
        """Test that the primary source passthrough wins over the environment."""
        primary = DictProvider({"Runner:EnvPassthrough": '{"SUITE": "regression"}'})
        resolver = ConfigResolver(primary, environ={"RUNNER_ENV_PASSTHROUGH": '{"SUITE": "smoke"}'})

        assert resolver.resolve_passthrough_env() == {"SUITE": "regression"}


def test_parse_bool():
    """Test parsing permissive boolean strings."""
    assert parse_bool("YES", False) is True
    assert parse_bool(" 1 ", False) is True
    assert parse_bool("n", True) is False
    assert parse_bool("0", True) is False
    assert parse_bool("maybe", True) is True
    assert parse_bool(None, False) is False


def test_resolve_azure_context():
    """Test resolving the Azure subscription, group and location."""
    context = resolve_azure_context({"AZURE_SUBSCRIPTION_ID": "sub", "RESOURCE_GROUP_NAME": "rg"})

    assert context.subscription_id == "sub"
    assert context.resource_group == "rg"
    assert context.location == "westeurope"

    with pytest.raises(ConfigError, match="RESOURCE_GROUP_NAME"):
        resolve_azure_context({"AZURE_SUBSCRIPTION_ID": "sub"})
