"""Tests for alert sinks, the dispatcher and the email sink."""

import json
import logging
import smtplib

import pytest

from tamperwatch.core import email_sink
from tamperwatch.core.alerts import AlertDispatcher, AlertManager
from tamperwatch.core.email_sink import EmailAlertSink
from tamperwatch.core.models import ChangeEvent, Severity
from tests.conftest import FailingSink, RecordingSink

H1 = "1" * 64
H2 = "2" * 64


def modified_event():
    return ChangeEvent.modified("/srv/www/index.php", 120, H1, H2)


def test_event_defaults_severity_by_kind():
    assert ChangeEvent.new_file("/a", 1, H1).severity is Severity.INFO
    assert modified_event().severity is Severity.WARNING
    assert ChangeEvent.deleted("/a", H1).severity is Severity.WARNING


def test_event_record_carries_only_known_fields():
    record = ChangeEvent.deleted("/srv/gone.php", H1).to_dict()
    assert record["classification"] == "deleted"
    assert record["old_fingerprint"] == H1
    assert "size" not in record
    assert "new_fingerprint" not in record

    record = modified_event().to_dict()
    assert record["classification"] == "modified"
    assert record["size"] == 120
    assert (record["old_fingerprint"], record["new_fingerprint"]) == (H1, H2)


def test_describe_mentions_both_hashes_for_modification():
    text = modified_event().describe()
    assert "modified: /srv/www/index.php" in text
    assert H1 in text and H2 in text


def test_alert_manager_writes_json_lines(tmp_path):
    log_path = tmp_path / "logs" / "alerts.log"
    manager = AlertManager(log_path=log_path, console_alerts=False)
    manager.notify(ChangeEvent.new_file("/srv/new.php", 10, H1))
    manager.notify(modified_event())

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["event_type"] for line in lines] == ["NEW", "MODIFIED"]
    assert json.loads(lines[0])["timestamp"]


def test_alert_manager_logs_timestamped_record(caplog):
    manager = AlertManager(console_alerts=False)
    with caplog.at_level(logging.WARNING, logger="tamperwatch.core.alerts"):
        manager.notify(modified_event())
    assert "ALERT:" in caplog.text
    assert "/srv/www/index.php" in caplog.text


def test_alert_manager_respects_min_severity(tmp_path):
    log_path = tmp_path / "alerts.log"
    manager = AlertManager(log_path=log_path, console_alerts=False, min_severity=Severity.WARNING)
    manager.notify(ChangeEvent.new_file("/srv/new.php", 10, H1))
    assert not log_path.exists()
    manager.notify(modified_event())
    assert len(log_path.read_text(encoding="utf-8").splitlines()) == 1


def test_alert_manager_without_usable_log_directory_keeps_alerting(tmp_path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="tamperwatch.core.alerts"):
        manager = AlertManager(log_path=blocker / "alerts.log", console_alerts=False)
        manager.notify(modified_event())
    assert manager.log_path is None
    assert "alert log disabled" in caplog.text
    assert "ALERT:" in caplog.text


def test_alert_manager_console_output(capsys):
    AlertManager(console_alerts=True).notify(modified_event())
    assert "modified: /srv/www/index.php" in capsys.readouterr().err


def test_dispatcher_isolates_failing_sink():
    recorder = RecordingSink()
    dispatcher = AlertDispatcher([FailingSink(), recorder])
    dispatcher.dispatch_batch([modified_event(), modified_event()])
    assert len(recorder.events) == 2
    assert dispatcher.failures == 2


class FakeSMTP:
    instances: list["FakeSMTP"] = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.sent = []
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        self.logged_in = user

    def send_message(self, msg):
        self.sent.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(email_sink.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def make_email_sink():
    return EmailAlertSink(host="smtp.example.com", to_addr="ops@example.com", user="tw@example.com", password="pw")


def test_email_sink_sends_one_message_per_flush(fake_smtp):
    sink = make_email_sink()
    sink.notify(ChangeEvent.new_file("/srv/a.php", 3, H1))
    sink.notify(modified_event())
    assert fake_smtp.instances == []

    sink.flush()
    assert len(fake_smtp.instances) == 1
    smtp = fake_smtp.instances[0]
    assert smtp.timeout == email_sink.DEFAULT_TIMEOUT
    assert smtp.logged_in == "tw@example.com"
    msg = smtp.sent[0]
    assert msg["To"] == "ops@example.com"
    assert "2 file change(s)" in msg["Subject"]
    body = msg.get_content()
    assert "/srv/a.php" in body and "/srv/www/index.php" in body

    sink.flush()
    assert len(fake_smtp.instances) == 1


def test_email_sink_failure_is_logged_not_raised(fake_smtp, caplog):
    fake_smtp.fail_with = smtplib.SMTPServerDisconnected("gone")
    sink = make_email_sink()
    sink.notify(modified_event())
    with caplog.at_level(logging.WARNING):
        sink.flush()
    assert "SMTP error" in caplog.text
    assert sink.send([modified_event()]) is False


def test_email_sink_unreachable_host(fake_smtp):
    fake_smtp.fail_with = ConnectionRefusedError("refused")
    assert make_email_sink().send([modified_event()]) is False


def test_email_body_counts_by_kind():
    body = email_sink.build_body(
        [ChangeEvent.new_file("/a", 1, H1), ChangeEvent.deleted("/b", H2), ChangeEvent.deleted("/c", H2)],
        "web01",
    )
    assert "New:       1" in body
    assert "Deleted:   2" in body
    assert "web01" in body
