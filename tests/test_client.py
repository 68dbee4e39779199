"""
Tests for ContentServiceClient against an httpx.MockTransport.
"""

import json

import httpx
import pytest

from flockdesk.classroom import HierarchyCoordinator
from flockdesk.errors import HierarchyLoadError, LessonLockedError, QuizLockedError, RemoteServiceError
from flockdesk.service import ContentServiceClient


def envelope(data=None, message="OK", success=True):
    body = {"success": success, "message": message}
    if data is not None:
        body["data"] = data
    return body


class Recorder:
    """MockTransport handler routing on (method, path)."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json=envelope(message="Not found", success=False))
        if isinstance(route, Exception):
            raise route
        if isinstance(route, httpx.Response):
            return route
        status, body = route
        return httpx.Response(status, json=body)


def make_client(routes, token=None):
    recorder = Recorder(routes)
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(recorder),
        base_url="http://content.test/api",
        headers=headers,
    )
    return ContentServiceClient("http://content.test/api", client=http), recorder, http


class TestReads:

    @pytest.mark.asyncio
    async def test_list_modules_unwraps_envelope_and_aliases(self):
        client, recorder, http = make_client({
            ("GET", "/api/courses/c1/modules"): (200, envelope([
                {"_id": "m2", "course": {"_id": "c1", "title": "Discipleship"}, "title": "Prayer", "order": 1},
                {"_id": "m1", "course": "c1", "title": "Foundations", "order": 0, "quiz": "q1"},
            ])),
        })
        async with http:
            modules = await client.list_modules("c1")

        assert [m.id for m in modules] == ["m2", "m1"]
        assert modules[0].course_id == "c1"
        assert modules[1].quiz_id == "q1"
        assert modules[0].quiz_id is None

    @pytest.mark.asyncio
    async def test_list_lessons_carries_server_lock_hint(self):
        client, _, http = make_client({
            ("GET", "/api/lessons/module/m1"): (200, envelope([
                {"_id": "L1", "module": "m1", "title": "Grace", "content": "<p>..</p>", "order": 0,
                 "video": {"url": "https://cdn.test/v.mp4"}, "duration": 12, "isGloballyLocked": False},
                {"_id": "L2", "module": "m1", "title": "Faith", "order": 1, "isGloballyLocked": True},
            ])),
        })
        async with http:
            lessons = await client.list_lessons("m1")

        assert lessons[0].media.url == "https://cdn.test/v.mp4"
        assert lessons[0].duration == 12
        assert lessons[0].is_globally_locked is False
        assert lessons[1].is_globally_locked is True
        assert lessons[1].is_locked is False

    @pytest.mark.asyncio
    async def test_module_quiz(self):
        client, _, http = make_client({
            ("GET", "/api/quizzes/module/m1"): (200, envelope({
                "_id": "q1", "module": "m1", "passingScore": 70,
                "questions": [
                    {"_id": "qq1", "question": "Who?", "type": "mcq", "options": ["a", "b"], "correctAnswerIndex": 1},
                    {"_id": "qq2", "question": "True?", "type": "true-false"},
                ],
            })),
        })
        async with http:
            quiz = await client.get_module_quiz("m1")

        assert quiz.passing_score == 70
        assert [q.order for q in quiz.questions] == [0, 1]

    @pytest.mark.asyncio
    async def test_missing_quiz_is_none(self):
        client, _, http = make_client({})
        async with http:
            assert await client.get_module_quiz("m9") is None

    @pytest.mark.asyncio
    async def test_get_course(self):
        client, _, http = make_client({
            ("GET", "/api/courses/c1"): (200, envelope({"course": {"_id": "c1", "title": "Discipleship 101"}})),
        })
        async with http:
            course = await client.get_course("c1")
        assert course.title == "Discipleship 101"

    @pytest.mark.asyncio
    async def test_list_completions(self):
        client, _, http = make_client({
            ("GET", "/api/completions/user/u1"): (200, envelope([
                {"userId": "u1", "lessonId": "L1", "passed": True, "completedAt": "2026-03-01T10:00:00Z"},
                {"userId": "u1", "quizId": "q1", "passed": False, "score": 55, "completedAt": "2026-03-02T10:00:00Z"},
            ])),
        })
        async with http:
            records = await client.list_completions("u1")
        assert [r.node_id for r in records] == ["L1", "q1"]
        assert records[1].score == 55


class TestWrites:

    @pytest.mark.asyncio
    async def test_reorder_lessons_payload(self):
        client, recorder, http = make_client({
            ("PUT", "/api/lessons/reorder"): (200, envelope(message="Lessons reordered")),
        })
        entries = [{"id": "L2", "order": 0}, {"id": "L1", "order": 1}]
        async with http:
            message = await client.reorder_lessons("m1", entries)

        assert message == "Lessons reordered"
        assert json.loads(recorder.requests[0].content) == {"moduleId": "m1", "lessons": entries}

    @pytest.mark.asyncio
    async def test_reorder_modules_payload(self):
        client, recorder, http = make_client({
            ("PUT", "/api/modules/c1/reorder"): (200, envelope({"message": "Modules reordered"})),
        })
        entries = [{"id": "m2", "order": 0}, {"id": "m1", "order": 1}]
        async with http:
            message = await client.reorder_modules("c1", entries)

        assert message == "Modules reordered"
        assert json.loads(recorder.requests[0].content) == {"modules": entries}

    @pytest.mark.asyncio
    async def test_complete_lesson_gate(self):
        client, _, http = make_client({
            ("POST", "/api/lessons/L2/complete"): (423, envelope(message="Complete the previous lesson first", success=False)),
        })
        async with http:
            with pytest.raises(LessonLockedError) as exc_info:
                await client.complete_lesson("L2")
        assert exc_info.value.node_id == "L2"
        assert "previous lesson" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_submit_quiz(self):
        client, recorder, http = make_client({
            ("POST", "/api/quizzes/q1/submit"): (200, envelope({"passed": False, "score": 65, "passingScore": 70})),
        })
        async with http:
            result = await client.submit_quiz("q1", [1, 0, 2])
        assert result.passed is False
        assert result.score == 65
        assert json.loads(recorder.requests[0].content) == {"answers": [1, 0, 2]}

    @pytest.mark.asyncio
    async def test_submit_quiz_gate(self):
        client, _, http = make_client({
            ("POST", "/api/quizzes/q1/submit"): (403, envelope(message="Quiz locked", success=False)),
        })
        async with http:
            with pytest.raises(QuizLockedError):
                await client.submit_quiz("q1", [0])


class TestErrors:

    @pytest.mark.asyncio
    async def test_server_error_message(self):
        client, _, http = make_client({
            ("PUT", "/api/lessons/reorder"): (500, envelope(message="Database unavailable", success=False)),
        })
        async with http:
            with pytest.raises(RemoteServiceError) as exc_info:
                await client.reorder_lessons("m1", [])
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Database unavailable"

    @pytest.mark.asyncio
    async def test_success_false_with_200(self):
        client, _, http = make_client({
            ("GET", "/api/courses/c1/modules"): (200, envelope(message="Course not published", success=False)),
        })
        async with http:
            with pytest.raises(RemoteServiceError):
                await client.list_modules("c1")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        client, _, http = make_client({
            ("GET", "/api/lessons/module/m1"): httpx.ConnectError("connection refused"),
        })
        async with http:
            with pytest.raises(RemoteServiceError) as exc_info:
                await client.list_lessons("m1")
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestMalformedResponses:

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client, _, http = make_client({
            ("GET", "/api/courses/c1/modules"): httpx.Response(200, text="<html>gateway</html>"),
        })
        async with http:
            with pytest.raises(RemoteServiceError) as exc_info:
                await client.list_modules("c1")
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_null_list_payload(self):
        client, _, http = make_client({
            ("GET", "/api/lessons/module/m1"): (200, {"success": True, "data": None}),
        })
        async with http:
            with pytest.raises(RemoteServiceError):
                await client.list_lessons("m1")

    @pytest.mark.asyncio
    async def test_empty_reorder_response_confirms(self):
        client, _, http = make_client({
            ("PUT", "/api/modules/c1/reorder"): httpx.Response(204),
        })
        async with http:
            assert await client.reorder_modules("c1", [{"id": "m1", "order": 0}]) == ""

    @pytest.mark.asyncio
    async def test_hierarchy_load_wraps_unreadable_response(self):
        client, _, http = make_client({
            ("GET", "/api/courses/c1/modules"): (200, envelope([
                {"_id": "m1", "course": "c1", "title": "Foundations", "order": 0},
            ])),
            ("GET", "/api/lessons/module/m1"): httpx.Response(200, text="<html>gateway</html>"),
        })
        async with http:
            with pytest.raises(HierarchyLoadError) as exc_info:
                await HierarchyCoordinator(client).load_hierarchy("c1")
        assert isinstance(exc_info.value.cause, RemoteServiceError)

    @pytest.mark.asyncio
    async def test_hierarchy_load_wraps_null_payload(self):
        client, _, http = make_client({
            ("GET", "/api/courses/c1/modules"): (200, {"success": True, "data": None}),
        })
        async with http:
            with pytest.raises(HierarchyLoadError):
                await HierarchyCoordinator(client).load_hierarchy("c1")


class TestOwnClient:

    @pytest.mark.asyncio
    async def test_bearer_token_header(self):
        client = ContentServiceClient("http://content.test/api", token="s3cret")
        try:
            assert client._http.headers["Authorization"] == "Bearer s3cret"
            assert str(client._http.base_url).startswith("http://content.test/api")
        finally:
            await client.aclose()
