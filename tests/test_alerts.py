"""Tests for alert dispatch, the alert email and the mailer."""

import json
import threading

import httpx

from gapfinder.alerts.dispatcher import AlertDispatcher
from gapfinder.alerts.email import alert_subject, build_alert_email
from gapfinder.alerts.mailer import RESEND_API_URL, ResendMailer
from gapfinder.clustering.online import assign_to_cluster

from conftest import FakeGenerator, RecordingMailer

E = [1.0, 0.0, 0.0, 0.0]


def _cluster(records, tenant, n=5, texts=None):
    cluster_id = None
    for i in range(n):
        text = texts[i] if texts else f"When is pickup {i}?"
        q = records.add_question(tenant.id, text, E)
        cluster_id = assign_to_cluster(records, q.id, E, tenant.id).cluster_id
    return cluster_id


def _dispatcher(records, mailer, generator=None, config=None):
    config = config or {"alerts": {"app_url": "https://app.example.com/"}}
    return AlertDispatcher(records, mailer, generator, config)


def test_alert_once(records, tenant):
    records.add_operator(tenant.id, email="admin@example.com", name="Admin")
    records.add_operator(tenant.id, name="No Email")
    cluster_id = _cluster(records, tenant)
    records.set_cluster_label(cluster_id, "Pickup times")
    mailer = RecordingMailer()
    dispatcher = _dispatcher(records, mailer)

    assert dispatcher.maybe_alert(cluster_id, tenant.id)
    assert not dispatcher.maybe_alert(cluster_id, tenant.id)

    notifications = records.list_notifications(tenant.id)
    assert len(notifications) == 2
    n = notifications[0]
    assert n.type == "cluster_alert"
    assert n.title == '5+ people asking about "Pickup times"'
    assert n.link == "/s/lincoln/admin/feedback"
    assert n.body.startswith("A knowledge gap has been detected. Sample questions: When is pickup 4?")
    assert n.body.count(";") == 2

    assert len(mailer.sent) == 1
    email = mailer.sent[0]
    assert email["to"] == ["admin@example.com"]
    assert email["subject"] == 'Knowledge gap detected: "Pickup times" (5 questions)'
    assert "https://app.example.com/s/lincoln/admin/feedback" in email["html"]
    assert records.get_cluster(cluster_id).alert_sent_at is not None


def test_concurrent_alerts_send_once(records, tenant):
    records.add_operator(tenant.id, email="a@example.com")
    records.add_operator(tenant.id, email="b@example.com")
    cluster_id = _cluster(records, tenant)
    mailer = RecordingMailer()
    dispatcher = _dispatcher(records, mailer)

    barrier = threading.Barrier(8)
    outcomes = []

    def run():
        barrier.wait(timeout=5)
        outcomes.append(dispatcher.maybe_alert(cluster_id, tenant.id))

    threads = [threading.Thread(target=run) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == [False] * 7 + [True]
    assert len(mailer.sent) == 1
    assert sorted(mailer.sent[0]["to"]) == ["a@example.com", "b@example.com"]
    assert len(records.list_notifications(tenant.id)) == 2


def test_missing_label_is_generated_and_saved(records, tenant):
    records.add_operator(tenant.id, email="admin@example.com")
    cluster_id = _cluster(records, tenant)
    generator = FakeGenerator(reply="Pickup schedule")
    dispatcher = _dispatcher(records, RecordingMailer(), generator)

    dispatcher.maybe_alert(cluster_id, tenant.id)
    assert records.get_cluster(cluster_id).label == "Pickup schedule"
    assert "Cluster 1 (5 questions)" in generator.calls[0]["prompt"]


def test_label_falls_back_to_first_question(records, tenant):
    cluster_id = _cluster(records, tenant, texts=[f"Bus {i}?" for i in range(5)])
    dispatcher = _dispatcher(records, RecordingMailer(), FakeGenerator(error=RuntimeError("down")))
    assert dispatcher.maybe_alert(cluster_id, tenant.id)
    assert records.get_cluster(cluster_id).label == "Bus 0?"


def test_no_operators(records, tenant):
    cluster_id = _cluster(records, tenant)
    mailer = RecordingMailer()
    assert _dispatcher(records, mailer).maybe_alert(cluster_id, tenant.id)
    assert records.list_notifications(tenant.id) == []
    assert mailer.sent == []
    # the claim is kept
    assert not _dispatcher(records, mailer).maybe_alert(cluster_id, tenant.id)


def test_operators_without_email(records, tenant):
    records.add_operator(tenant.id, name="Front desk")
    cluster_id = _cluster(records, tenant)
    mailer = RecordingMailer()
    _dispatcher(records, mailer).maybe_alert(cluster_id, tenant.id)
    assert len(records.list_notifications(tenant.id)) == 1
    assert mailer.sent == []


def test_unknown_tenant_uses_id_in_link(records):
    records.add_operator("t-404", email="ops@example.com")
    q = records.add_question("t-404", "Where?", E)
    cluster_id = assign_to_cluster(records, q.id, E, "t-404").cluster_id
    _dispatcher(records, RecordingMailer()).maybe_alert(cluster_id, "t-404")
    assert records.list_notifications("t-404")[0].link == "/s/t-404/admin/feedback"


def test_mailer_failure_keeps_claim(records, tenant):
    class ExplodingMailer:
        def send(self, to, subject, html):
            raise RuntimeError("smtp down")

    records.add_operator(tenant.id, email="admin@example.com")
    cluster_id = _cluster(records, tenant)
    assert _dispatcher(records, ExplodingMailer()).maybe_alert(cluster_id, tenant.id)
    assert records.get_cluster(cluster_id).alert_sent_at is not None
    assert len(records.list_notifications(tenant.id)) == 1


def test_alert_email_escapes():
    html = build_alert_email(
        tenant_name="A & B School",
        label="<script>",
        question_count=7,
        sample_questions=['Is "lunch" free?'],
        feedback_url="https://app.example.com/s/ab/admin/feedback",
    )
    assert "A &amp; B School" in html
    assert "&lt;script&gt;" in html
    assert "Is &quot;lunch&quot; free?" in html
    assert "<strong>7 people</strong>" in html
    assert alert_subject("Bus", 7) == 'Knowledge gap detected: "Bus" (7 questions)'


def test_mailer_without_key_is_noop():
    def fail(request):
        raise AssertionError("no request expected")

    mailer = ResendMailer(None, "x@example.com", client=httpx.Client(transport=httpx.MockTransport(fail)))
    assert not mailer.send(["a@example.com"], "Subject", "<p>hi</p>")


def test_mailer_posts_to_resend():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "msg_1"})

    mailer = ResendMailer("re_key", "Alerts <alerts@example.com>", client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert mailer.send("a@example.com", "Subject", "<p>hi</p>")

    request = seen[0]
    assert str(request.url) == RESEND_API_URL
    assert request.headers["Authorization"] == "Bearer re_key"
    assert json.loads(request.content) == {
        "from": "Alerts <alerts@example.com>",
        "to": ["a@example.com"],
        "subject": "Subject",
        "html": "<p>hi</p>",
    }


def test_mailer_logs_http_errors():
    mailer = ResendMailer(
        "re_key", "x@example.com",
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(422, json={}))),
    )
    assert not mailer.send(["a@example.com"], "Subject", "<p>hi</p>")


def test_email_sent_when_notifications_fail(records, tenant, monkeypatch):
    records.add_operator(tenant.id, email="admin@example.com")
    cluster_id = _cluster(records, tenant)

    def broken(notifications):
        raise RuntimeError("notifications table locked")

    monkeypatch.setattr(records, "add_notifications", broken)
    mailer = RecordingMailer()
    assert _dispatcher(records, mailer).maybe_alert(cluster_id, tenant.id)
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == ["admin@example.com"]


def test_mailer_accepts_non_json_success():
    mailer = ResendMailer(
        "re_key", "x@example.com",
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="OK"))),
    )
    assert mailer.send(["a@example.com"], "Subject", "<p>hi</p>")
