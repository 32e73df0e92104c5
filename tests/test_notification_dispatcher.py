import pytest

from seatkeeper.services.mailer import ResendMailer, render_signup_email
from seatkeeper.workers.notification_dispatcher import GROUP, handle_entry, process_batch
from tests.conftest import make_settings

pytestmark = pytest.mark.asyncio

ENTRY = {
    "email": "ann@x.test",
    "full_name": "Ann",
    "status": "waitlist",
    "session_id": "s-1",
    "topic": "Resume Workshop",
    "instructor": "Priya Raman",
    "start_at": "2030-03-01T17:00:00+00:00",
    "location": "Career Center",
}


class RecordingMailer:
    def __init__(self, ok: bool = True):
        self.ok = ok
        self.sent: list[dict] = []

    async def send(self, *, to, subject, body):
        self.sent.append({"to": to, "subject": subject, "body": body})
        return self.ok


class StreamRedis:
    """Just enough of XREADGROUP/XACK for one batch."""

    def __init__(self, entries):
        self.entries = entries
        self.acked: list[str] = []
        self.reads: list[tuple] = []

    async def xreadgroup(self, group, consumer, streams, count=None, block=None):
        self.reads.append((group, consumer, dict(streams), block))
        return [("notify:signups", self.entries)]

    async def xack(self, stream, group, msg_id):
        self.acked.append(msg_id)
        return 1


async def test_render_waitlist_and_confirmed():
    subject, body = render_signup_email(ENTRY)
    assert subject == "Waitlisted: Resume Workshop"
    assert "Career Center" in body and "Priya Raman" in body

    subject, _ = render_signup_email({**ENTRY, "status": "confirmed"})
    assert subject == "You're registered: Resume Workshop"


async def test_handle_entry_sends_to_registrant():
    mailer = RecordingMailer()
    assert await handle_entry(mailer, ENTRY)
    assert mailer.sent[0]["to"] == "ann@x.test"


async def test_entry_without_email_is_dropped():
    mailer = RecordingMailer()
    assert await handle_entry(mailer, {**ENTRY, "email": ""})
    assert mailer.sent == []


async def test_delivered_entries_are_acked_failures_stay_pending():
    redis = StreamRedis([("1-0", ENTRY), ("2-0", {**ENTRY, "email": "bo@x.test"})])

    acked = await process_batch(redis, RecordingMailer(ok=True), stream="notify:signups", consumer="c1")
    assert acked == 2
    assert redis.acked == ["1-0", "2-0"]
    assert redis.reads[0][:3] == (GROUP, "c1", {"notify:signups": ">"})

    redis = StreamRedis([("3-0", ENTRY)])
    acked = await process_batch(redis, RecordingMailer(ok=False), stream="notify:signups", consumer="c1",
                                pending=True)
    assert acked == 0
    assert redis.acked == []
    assert redis.reads[0][2] == {"notify:signups": "0"}


async def test_unconfigured_mailer_logs_instead_of_sending(tmp_path):
    mailer = ResendMailer(make_settings(tmp_path, RESEND_API_KEY=None))
    assert not mailer.enabled
    assert await mailer.send(to="ann@x.test", subject="hi", body="there")


async def test_configured_mailer_sends_through_resend(tmp_path, monkeypatch):
    calls = []

    def _send(params):
        calls.append(params)
        return {"id": "email-1"}

    monkeypatch.setattr("resend.Emails.send", _send)
    mailer = ResendMailer(make_settings(tmp_path, RESEND_API_KEY="re_test", MAIL_FROM="Desk <desk@x.test>"))
    assert mailer.enabled

    assert await mailer.send(to="ann@x.test", subject="Waitlisted: Git", body="hello")
    assert calls == [{"from": "Desk <desk@x.test>", "to": ["ann@x.test"], "subject": "Waitlisted: Git", "text": "hello"}]


async def test_resend_transport_failure_reports_false(tmp_path, monkeypatch):
    def _down(params):
        raise ConnectionError("connection refused")

    monkeypatch.setattr("resend.Emails.send", _down)
    mailer = ResendMailer(make_settings(tmp_path, RESEND_API_KEY="re_test"))
    assert await mailer.send(to="ann@x.test", subject="hi", body="there") is False
