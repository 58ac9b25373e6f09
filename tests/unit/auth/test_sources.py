"""Tests for the ambient and gcloud token sources."""

from datetime import UTC, datetime, timedelta

import google.auth
import google.auth.exceptions
import pytest

from artifactregistry_auth.auth import CredentialResolver
from artifactregistry_auth.auth.command import CommandResult
from artifactregistry_auth.auth.exceptions import (
    CommandExecutionError,
    CredentialExpiredError,
    CredentialUnavailableError,
    MalformedCredentialError,
)
from artifactregistry_auth.auth.sources import (
    CLOUD_PLATFORM_SCOPES,
    GCLOUD_ARGS,
    AmbientTokenSource,
    GcloudTokenSource,
    default_sources,
    gcloud_command,
)
from artifactregistry_auth.testing import FakeCommandRunner, gcloud_output

NOW = datetime(2030, 6, 1, 12, 0, 0, tzinfo=UTC)


def fixed_clock():
    return NOW


def gcloud_source(*results):
    runner = FakeCommandRunner(results)
    return GcloudTokenSource(runner=runner, command="gcloud", clock=fixed_clock), runner


class TestGcloudCommand:
    @pytest.mark.unit
    @pytest.mark.parametrize("platform", ["win32", "Windows", "windows", "WIN32"])
    def test_windows_uses_cmd_wrapper(self, platform):
        assert gcloud_command(platform) == "gcloud.cmd"

    @pytest.mark.unit
    @pytest.mark.parametrize("platform", ["linux", "darwin", "Linux", "Darwin", "freebsd13", "cygwin"])
    def test_other_platforms_use_plain_name(self, platform):
        assert gcloud_command(platform) == "gcloud"

    @pytest.mark.unit
    def test_defaults_to_current_platform(self, monkeypatch):
        monkeypatch.setattr("sys.platform", "win32")
        assert gcloud_command() == "gcloud.cmd"


class TestGcloudTokenSource:
    @pytest.mark.unit
    def test_returns_token_from_output(self):
        """A well-formed descriptor with a future expiry yields a matching token."""
        source, runner = gcloud_source(CommandResult(0, gcloud_output("ya29.token", "2030-06-01T13:00:00Z"), ""))

        token = source.fetch()

        assert token.value == "ya29.token"
        assert token.expiry == datetime(2030, 6, 1, 13, 0, 0, tzinfo=UTC)
        assert runner.calls == [("gcloud", *GCLOUD_ARGS)]

    @pytest.mark.unit
    def test_invokes_config_helper(self):
        source, runner = gcloud_source(CommandResult(0, gcloud_output("t", NOW + timedelta(hours=1)), ""))

        source.fetch()

        assert runner.calls[0] == ("gcloud", "config", "config-helper", "--format=json(credential)")

    @pytest.mark.unit
    def test_ignores_extra_fields(self):
        output = (
            '{"credential": {"access_token": "t", "token_expiry": "2030-06-01T13:00:00Z", "id_token": "x"},'
            ' "configuration": {"active_configuration": "default"}}'
        )
        source, _ = gcloud_source(CommandResult(0, output, ""))

        assert source.fetch().value == "t"

    @pytest.mark.unit
    @pytest.mark.parametrize("exit_code", [1, 2, 127, -9])
    def test_nonzero_exit_reports_code_and_output(self, exit_code):
        """Nonzero exits embed the exit code, stdout and stderr verbatim."""
        source, _ = gcloud_source(CommandResult(exit_code, "partial output", "ERROR: (gcloud) not logged in"))

        with pytest.raises(CommandExecutionError) as exc_info:
            source.fetch()

        message = str(exc_info.value)
        assert f"gcloud exited with status: {exit_code}" in message
        assert "partial output" in message
        assert "ERROR: (gcloud) not logged in" in message
        assert exc_info.value.exit_code == exit_code

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "expiry",
        [NOW, NOW - timedelta(seconds=1), NOW - timedelta(days=30)],
    )
    def test_expired_token_is_rejected(self, expiry):
        """Stale tokens fail with a message pointing at gcloud auth login."""
        source, _ = gcloud_source(CommandResult(0, gcloud_output("stale", expiry), ""))

        with pytest.raises(CredentialExpiredError) as exc_info:
            source.fetch()

        assert "gcloud auth login" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.parametrize("output", ["", "not json", "{", "[1, 2]"])
    def test_unparseable_output(self, output):
        source, _ = gcloud_source(CommandResult(0, output, ""))

        with pytest.raises(MalformedCredentialError):
            source.fetch()

    @pytest.mark.unit
    def test_missing_credential(self):
        source, _ = gcloud_source(CommandResult(0, '{"configuration": {}}', ""))

        with pytest.raises(MalformedCredentialError) as exc_info:
            source.fetch()

        assert "No credential returned from gcloud" in str(exc_info.value)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "credential",
        [
            '{"token_expiry": "2030-06-01T13:00:00Z"}',
            '{"access_token": "t"}',
            '{"access_token": 42, "token_expiry": "2030-06-01T13:00:00Z"}',
            '"just a string"',
        ],
    )
    def test_missing_fields(self, credential):
        source, _ = gcloud_source(CommandResult(0, f'{{"credential": {credential}}}', ""))

        with pytest.raises(MalformedCredentialError) as exc_info:
            source.fetch()

        assert "Malformed response from gcloud" in str(exc_info.value)

    @pytest.mark.unit
    def test_bad_timestamp(self):
        source, _ = gcloud_source(CommandResult(0, gcloud_output("t", "2030-06-01 13:00:00"), ""))

        with pytest.raises(MalformedCredentialError) as exc_info:
            source.fetch()

        assert "Failed to parse timestamp" in str(exc_info.value)

    @pytest.mark.unit
    def test_runner_failure_propagates(self):
        class BrokenRunner:
            def execute(self, command, *args):
                raise CommandExecutionError("Failed to run gcloud: not found")

        source = GcloudTokenSource(runner=BrokenRunner(), command="gcloud", clock=fixed_clock)

        with pytest.raises(CommandExecutionError, match="not found"):
            source.fetch()


class FakeGoogleCredentials:
    """Stand-in for google.auth credentials: token and expiry appear on refresh."""

    def __init__(self, token="ya29.ambient", expiry=None, refresh_error=None):
        self.token = None
        self.expiry = None
        self._token = token
        self._expiry = expiry if expiry is not None else datetime(2030, 6, 1, 13, 0, 0)
        self._refresh_error = refresh_error
        self.refresh_requests = []

    def refresh(self, request):
        self.refresh_requests.append(request)
        if self._refresh_error:
            raise self._refresh_error
        self.token = self._token
        self.expiry = self._expiry


class TestAmbientTokenSource:
    @pytest.fixture
    def patch_default(self, monkeypatch):
        calls = []

        def install(credentials=None, error=None):
            def fake_default(scopes=None, **kwargs):
                calls.append(scopes)
                if error:
                    raise error
                return credentials, "my-project"

            monkeypatch.setattr(google.auth, "default", fake_default)
            return calls

        return install

    @pytest.mark.unit
    def test_returns_refreshed_token(self, patch_default):
        credentials = FakeGoogleCredentials()
        patch_default(credentials)
        request = object()

        token = AmbientTokenSource(request_factory=lambda: request).fetch()

        assert token.value == "ya29.ambient"
        assert token.expiry == datetime(2030, 6, 1, 13, 0, 0, tzinfo=UTC)
        assert credentials.refresh_requests == [request]

    @pytest.mark.unit
    def test_requests_cloud_platform_scopes(self, patch_default):
        calls = patch_default(FakeGoogleCredentials())

        AmbientTokenSource(request_factory=object).fetch()

        assert calls == [list(CLOUD_PLATFORM_SCOPES)]
        assert CLOUD_PLATFORM_SCOPES == (
            "https://www.googleapis.com/auth/cloud-platform",
            "https://www.googleapis.com/auth/cloud-platform.read-only",
        )

    @pytest.mark.unit
    def test_keeps_aware_expiry(self, patch_default):
        expiry = datetime(2030, 6, 1, 13, 0, 0, tzinfo=UTC)
        patch_default(FakeGoogleCredentials(expiry=expiry))

        assert AmbientTokenSource(request_factory=object).fetch().expiry == expiry

    @pytest.mark.unit
    def test_no_default_credentials(self, patch_default):
        patch_default(error=google.auth.exceptions.DefaultCredentialsError("Could not automatically determine"))

        with pytest.raises(CredentialUnavailableError, match="Could not automatically determine"):
            AmbientTokenSource(request_factory=object).fetch()

    @pytest.mark.unit
    def test_refresh_failure(self, patch_default):
        patch_default(FakeGoogleCredentials(refresh_error=google.auth.exceptions.RefreshError("invalid_grant")))

        with pytest.raises(CredentialUnavailableError, match="invalid_grant"):
            AmbientTokenSource(request_factory=object).fetch()

    @pytest.mark.unit
    def test_missing_token(self, patch_default):
        patch_default(FakeGoogleCredentials(token=None))

        with pytest.raises(CredentialUnavailableError, match="did not return an access token"):
            AmbientTokenSource(request_factory=object).fetch()

    @pytest.mark.unit
    def test_later_fetches_refresh_discovered_credentials(self, patch_default):
        credentials = FakeGoogleCredentials()
        calls = patch_default(credentials)
        source = AmbientTokenSource(request_factory=object)

        for _ in range(4):
            source.fetch()

        assert len(calls) == 1
        assert len(credentials.refresh_requests) == 4

    @pytest.mark.unit
    def test_stale_refreshes_reuse_discovered_credentials(self, patch_default):
        """Throttled refreshes through the resolver never repeat discovery."""
        credentials = FakeGoogleCredentials()
        calls = patch_default(credentials)
        clock_ms = [0]
        resolver = CredentialResolver([AmbientTokenSource(request_factory=object)], clock=lambda: clock_ms[0])

        resolver.get_credential()
        for _ in range(3):
            clock_ms[0] += 10_001
            resolver.get_credential()

        assert len(calls) == 1
        assert len(credentials.refresh_requests) == 4

    @pytest.mark.unit
    def test_failed_discovery_is_retried(self, patch_default):
        calls = patch_default(error=google.auth.exceptions.DefaultCredentialsError("No ADC file"))
        source = AmbientTokenSource(request_factory=object)

        with pytest.raises(CredentialUnavailableError):
            source.fetch()

        patch_default(FakeGoogleCredentials())

        assert source.fetch().value == "ya29.ambient"
        assert len(calls) == 2

    @pytest.mark.unit
    def test_refresh_failure_keeps_discovered_credentials(self, patch_default):
        credentials = FakeGoogleCredentials()
        calls = patch_default(credentials)
        source = AmbientTokenSource(request_factory=object)
        source.fetch()

        credentials._refresh_error = google.auth.exceptions.TransportError("metadata server unreachable")
        with pytest.raises(CredentialUnavailableError, match="metadata server unreachable"):
            source.fetch()

        credentials._refresh_error = None
        source.fetch()

        assert len(calls) == 1


@pytest.mark.unit
def test_default_sources_order():
    """Ambient credentials are tried before gcloud."""
    sources = default_sources(command="gcloud")

    assert [type(source) for source in sources] == [AmbientTokenSource, GcloudTokenSource]
    assert sources[1].command == "gcloud"
