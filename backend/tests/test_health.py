def test_health_ok(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "ok"
    assert body["db"] is True
    assert body["mailer"] is True


def test_health_degraded_when_mailer_down(client, mailer):
    mailer.fail = True
    body = client.get("/api/health").json()
    assert body["status"] == "degraded"
    assert body["mailer"] is False
