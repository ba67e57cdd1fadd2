import anyio
from fastapi.testclient import TestClient

from aurora_mcp.http_server import create_http_app
from aurora_mcp.models import ToolRequest
from aurora_mcp.transports import SseHub

ECHO = {"id": "1", "tool": "echo", "arguments": {"text": "hi"}}


def test_hub_delivers_responses_on_the_session_stream(make_runtime) -> None:
    runtime = make_runtime(transport="sse")

    async def run_test() -> None:
        hub = SseHub(runtime.sessions, runtime.dispatcher)
        async with anyio.create_task_group() as tg:
            hub.bind(tg)
            channel = hub.open()
            await hub.submit(channel.session_id, ToolRequest(id="1", tool="echo", arguments={"text": "hi"}))

            response = await channel.next_response(2)
            assert response.to_wire() == {"id": "1", "ok": True, "result": "hi"}

            runtime.sessions.destroy(channel.session_id)
            assert len(hub) == 0

    anyio.run(run_test)


def test_frames_start_with_endpoint_event(make_runtime) -> None:
    runtime = make_runtime(transport="sse")

    async def run_test() -> None:
        hub = SseHub(runtime.sessions, runtime.dispatcher)
        async with anyio.create_task_group() as tg:
            hub.bind(tg)
            channel = hub.open("fixed-id")
            await hub.submit("fixed-id", ToolRequest(id="9", tool="echo", arguments={"text": "yo"}))

            frames = channel.frames(keepalive=2)
            assert await frames.__anext__() == "event: endpoint\ndata: /events/fixed-id\n\n"
            assert await frames.__anext__() == 'data: {"id": "9", "ok": true, "result": "yo"}\n\n'

            runtime.sessions.destroy("fixed-id")
            with_end = [frame async for frame in frames]
            assert with_end == []

    anyio.run(run_test)


def test_keepalive_comment_when_idle(make_runtime) -> None:
    runtime = make_runtime(transport="sse")

    async def run_test() -> None:
        hub = SseHub(runtime.sessions, runtime.dispatcher)
        async with anyio.create_task_group() as tg:
            hub.bind(tg)
            channel = hub.open()
            frames = channel.frames(keepalive=0.05)
            await frames.__anext__()

            assert await frames.__anext__() == ": keep-alive\n\n"
            runtime.sessions.destroy(channel.session_id)

    anyio.run(run_test)


def test_post_is_accepted_for_open_session(make_runtime) -> None:
    runtime = make_runtime(transport="sse")
    app = create_http_app(runtime)

    with TestClient(app) as client:
        channel = client.portal.call(app.state.sse_hub.open)
        r = client.post(f"/events/{channel.session_id}", json=ECHO)

        assert r.status_code == 202
        assert r.json() == {"id": "1", "accepted": True}


def test_post_after_reap_is_unknown_session(make_runtime, clock) -> None:
    runtime = make_runtime(transport="sse", clock=clock)
    app = create_http_app(runtime)

    with TestClient(app) as client:
        channel = client.portal.call(app.state.sse_hub.open)
        session_id = channel.session_id

        clock.advance(runtime.settings.idle_timeout + 1)
        assert client.portal.call(runtime.sessions.reap, runtime.settings.idle_timeout) == 1

        r = client.post(f"/events/{session_id}", json=ECHO)
        assert r.status_code == 404
        assert r.json()["ok"] is False
        assert r.json()["error"]["kind"] == "UnknownSession"


def test_post_to_unknown_session(make_runtime) -> None:
    app = create_http_app(make_runtime(transport="sse"))

    with TestClient(app) as client:
        r = client.post("/events/nobody", json=ECHO)

    assert r.status_code == 404
    assert r.json()["error"]["kind"] == "UnknownSession"


def test_post_malformed_body(make_runtime) -> None:
    app = create_http_app(make_runtime(transport="sse"))

    with TestClient(app) as client:
        channel = client.portal.call(app.state.sse_hub.open)
        r = client.post(f"/events/{channel.session_id}", content=b"[]", headers={"Content-Type": "application/json"})

    assert r.status_code == 400
    assert r.json()["error"]["kind"] == "TransportError"


def test_stream_conflict_for_open_session(make_runtime) -> None:
    app = create_http_app(make_runtime(transport="sse"))

    with TestClient(app) as client:
        channel = client.portal.call(app.state.sse_hub.open)
        r = client.get(f"/events?session={channel.session_id}")

    assert r.status_code == 409


def test_sse_app_has_no_rpc_route(make_runtime) -> None:
    client = TestClient(create_http_app(make_runtime(transport="sse")))

    assert client.get("/health").json() == {"status": "healthy"}
    assert client.post("/rpc", json=ECHO).status_code in (404, 405)
