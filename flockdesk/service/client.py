"""
ContentServiceClient - Async access to the remote content service.

Every response arrives in the envelope ``{"success", "message", "data"}``;
methods return the parsed ``data``. Non-2xx answers become
RemoteServiceError (or a gate rejection for completion endpoints).
"""

import logging
from typing import Any, Optional

import httpx

from flockdesk.errors import LessonLockedError, QuizLockedError, RemoteServiceError
from flockdesk.schemas import CompletionRecord, Course, Lesson, Module, Quiz, QuizResult


logger = logging.getLogger(__name__)

# Statuses the service uses to refuse out-of-order completions
GATE_STATUSES = {403, 409, 423}


class ContentServiceClient:
    """
    Thin async client over httpx.

    Usable as an async context manager; when `client` is supplied the caller
    owns its lifetime.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)
        self._http = client

    async def __aenter__(self) -> "ContentServiceClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        if self._owns_client:
            await self._http.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteServiceError(f"{method} {path} failed: {exc}") from exc
        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase

    def _unwrap(self, response: httpx.Response) -> Any:
        if response.is_error:
            raise RemoteServiceError(self._message(response), status_code=response.status_code)
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            raise RemoteServiceError(
                f"Unreadable response from {response.request.url.path}", status_code=response.status_code
            ) from exc
        if isinstance(body, dict) and body.get("success") is False:
            raise RemoteServiceError(self._message(response), status_code=response.status_code)
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        return self._unwrap(await self._request(method, path, **kwargs))

    async def _call_list(self, path: str) -> list:
        data = await self._call("GET", path)
        if not isinstance(data, list):
            raise RemoteServiceError(f"GET {path} returned {type(data).__name__}, expected a list")
        return data

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_course(self, course_id: str) -> Course:
        data = await self._call("GET", f"/courses/{course_id}")
        if isinstance(data, dict) and "course" in data:
            data = data["course"]
        return Course.model_validate(data)

    async def list_modules(self, course_id: str) -> list[Module]:
        data = await self._call_list(f"/courses/{course_id}/modules")
        return [Module.model_validate(item) for item in data]

    async def list_lessons(self, module_id: str) -> list[Lesson]:
        """Lessons of a module, flagged `isGloballyLocked` for the requesting user."""
        data = await self._call_list(f"/lessons/module/{module_id}")
        return [Lesson.model_validate(item) for item in data]

    async def get_module_quiz(self, module_id: str) -> Optional[Quiz]:
        """The module's quiz, or None when the module has none."""
        response = await self._request("GET", f"/quizzes/module/{module_id}")
        if response.status_code == 404:
            return None
        data = self._unwrap(response)
        if not data:
            return None
        return Quiz.model_validate(data)

    async def list_completions(self, user_id: str) -> list[CompletionRecord]:
        data = await self._call_list(f"/completions/user/{user_id}")
        return [CompletionRecord.model_validate(item) for item in data]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def reorder_lessons(self, module_id: str, entries: list[dict]) -> str:
        data = await self._call("PUT", "/lessons/reorder", json={"moduleId": module_id, "lessons": entries})
        return _confirmation(data)

    async def reorder_modules(self, course_id: str, entries: list[dict]) -> str:
        data = await self._call("PUT", f"/modules/{course_id}/reorder", json={"modules": entries})
        return _confirmation(data)

    async def complete_lesson(self, lesson_id: str) -> dict:
        """
        Submit a lesson completion.

        Raises:
            LessonLockedError: the service refused it as out of order
        """
        response = await self._request("POST", f"/lessons/{lesson_id}/complete")
        if response.status_code in GATE_STATUSES:
            raise LessonLockedError(lesson_id, self._message(response))
        return self._unwrap(response) or {}

    async def submit_quiz(self, quiz_id: str, answers: list[int]) -> QuizResult:
        """
        Submit quiz answers (one selected option index per question).

        Raises:
            QuizLockedError: the module's lessons are not all completed
        """
        response = await self._request("POST", f"/quizzes/{quiz_id}/submit", json={"answers": answers})
        if response.status_code in GATE_STATUSES:
            raise QuizLockedError(quiz_id, self._message(response))
        return QuizResult.model_validate(self._unwrap(response))


def _confirmation(data: Any) -> str:
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return str(data or "")
