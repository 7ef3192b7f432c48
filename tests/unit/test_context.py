import pytest
from pydantic import ValidationError

from pgreport.config import DEFAULT_CONFORMANCE_SUITE, ReportingSettings
from pgreport.context import ReportingContext, should_report


class TestSettings:
    def test_defaults(self):
        settings = ReportingSettings()

        assert settings.dsn is None
        assert settings.session_token is None
        assert settings.client_loading == "static"
        assert settings.client_module == "psycopg2"
        assert settings.conformance_suite == DEFAULT_CONFORMANCE_SUITE
        assert settings.debug is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("PGREPORT_CONN", "host=db dbname=results")
        monkeypatch.setenv("PGREPORT_SESSION_ID", "S1")
        monkeypatch.setenv("PGREPORT_CLIENT_LOADING", "dynamic")
        monkeypatch.setenv("PGREPORT_DEBUG", "1")

        settings = ReportingSettings()

        assert settings.dsn == "host=db dbname=results"
        assert settings.session_token == "S1"
        assert settings.client_loading == "dynamic"
        assert settings.debug is True

    def test_descriptor_is_not_shown_in_repr(self, monkeypatch):
        monkeypatch.setenv("PGREPORT_CONN", "host=db password=secret")

        assert "secret" not in repr(ReportingSettings())

    def test_unknown_loading_mode_is_rejected(self, monkeypatch):
        monkeypatch.setenv("PGREPORT_CLIENT_LOADING", "sometimes")

        with pytest.raises(ValidationError):
            ReportingSettings()


class TestShouldReport:
    def test_needs_descriptor_and_token(self):
        assert should_report(ReportingSettings(connection="host=db", session_token="S1")) is True
        assert should_report(ReportingSettings(connection="host=db")) is False
        assert should_report(ReportingSettings(session_token="S1")) is False
        assert should_report(ReportingSettings()) is False


class TestReportingContext:
    def test_create_starts_session(self, settings, backend):
        context = ReportingContext.create(settings, backend)

        assert context.enabled is True
        assert context.listener.session_id == 7
        assert context.connection.is_connected is True

    def test_link_is_bound_to_listener(self, settings, backend):
        context = ReportingContext.create(settings, backend)

        link = context.link()
        link.set_custom_field("device", "CPU")

        assert link.is_bound is True
        assert context.listener.get_custom_field("device") == "CPU"

    def test_close_is_idempotent(self, settings, backend):
        with ReportingContext.create(settings, backend) as context:
            pass
        context.close()

        closes = [s for s in backend.executed if s.startswith("UPDATE sessions")]
        assert len(closes) == 1
        assert len(backend.finished) == 1
        assert context.connection.is_connected is False

    def test_unencodable_token_disables_without_raising(self, backend):
        backend.client_encoding = "latin-1"
        settings = ReportingSettings(connection="host=db", session_token="\u591c\u95f4")

        context = ReportingContext.create(settings, backend)
        context.close()

        assert context.enabled is False
        assert len(backend.finished) == 1

    def test_disabled_context_without_token(self, backend):
        settings = ReportingSettings(connection="host=db")

        context = ReportingContext.create(settings, backend)
        context.close()

        assert context.enabled is False
        assert backend.transport_calls == 0
