# Session: task factory and registry

import asyncio
import itertools

from ._challenge import ChallengeResolver
from ._compat import USE_SESSION_DEFAULT, _logger
from ._config import SessionConfig
from ._credentials import CredentialStore
from ._exceptions import InvalidRequest, SessionInvalidated
from ._handler import Handler
from ._request import Request
from ._task import Task
from ._transports import HTTPTransport


class Session:
    """Creates tasks and holds what they share.

    A Session owns the default handler, the credential store, the transport
    and the configuration. Tasks it creates run concurrently on the event
    loop; the session keeps track of those still running.

    Example:
        async with Session(handler, credential_store=store) as session:
            task = session.create_task(Request("GET", "https://example.org/"))
            task.resume()
            await task
    """

    def __init__(
        self,
        handler=None,
        *,
        credential_store=None,
        transport=None,
        config=None,
        resolver=None,
    ):
        self.config = config if config is not None else SessionConfig()
        self.handler = handler if handler is not None else Handler()
        self.credential_store = (
            credential_store if credential_store is not None else CredentialStore()
        )
        self.resolver = resolver if resolver is not None else ChallengeResolver()
        self._transport = transport
        self._tasks = {}
        self._identifiers = itertools.count(1)
        self._is_invalidated = False
        self._finishing = False
        self._all_finished = None

    @property
    def transport(self):
        if self._transport is None:
            self._transport = HTTPTransport(
                verify=self.config.verify,
                cert=self.config.cert,
                timeout=self.config.timeout,
                trust_env=self.config.trust_env,
            )
        return self._transport

    @property
    def is_invalidated(self):
        return self._is_invalidated

    @property
    def tasks(self):
        """Tasks created by this session that have not finished yet."""
        return list(self._tasks.values())

    def get_task(self, task_identifier):
        return self._tasks.get(task_identifier)

    def create_task(
        self,
        request=None,
        *,
        method="GET",
        url=None,
        headers=None,
        content=None,
        stream=None,
        handler=USE_SESSION_DEFAULT,
        credential=None,
    ):
        """Create a task for ``request`` (or for the given request fields).

        Never raises: a request that cannot be sent, or a session that has
        been invalidated, gives a task that fails once resumed.
        """
        validation_error = None
        if request is None:
            try:
                request = Request(
                    method, url or "", headers=headers, content=content, stream=stream
                )
            except InvalidRequest as exc:
                validation_error = exc
                request = Request("GET", "")
            except (TypeError, ValueError) as exc:
                validation_error = InvalidRequest(str(exc))
                request = Request("GET", "")
        if validation_error is None:
            try:
                request.validate()
            except InvalidRequest as exc:
                validation_error = exc

        if self._is_invalidated or self._finishing:
            validation_error = SessionInvalidated(
                "Cannot create tasks on an invalidated session"
            )

        task = Task(
            self,
            request,
            task_identifier=next(self._identifiers),
            handler=self.handler if handler is USE_SESSION_DEFAULT else handler or Handler(),
            credential=credential,
            validation_error=validation_error,
        )
        if validation_error is not None:
            _logger.debug("Created %r that will fail: %s", task, validation_error)
        self._tasks[task.task_identifier] = task
        return task

    def _task_finished(self, task):
        self._tasks.pop(task.task_identifier, None)
        if not self._tasks and self._all_finished is not None:
            self._all_finished.set()

    async def finish_tasks_and_invalidate(self):
        """Let running tasks finish, then invalidate the session.

        Tasks that were created but never resumed are cancelled.
        """
        self._finishing = True
        for task in self.tasks:
            if task._runner is None:
                task._abort(SessionInvalidated("Session invalidated", task=task))
        await self._wait_for_tasks()
        await self._invalidate()

    async def invalidate_and_cancel(self):
        """Invalidate the session and cancel every running task."""
        self._finishing = True
        for task in self.tasks:
            task._abort(SessionInvalidated("Session invalidated", task=task))
        await self._wait_for_tasks()
        await self._invalidate()

    async def _wait_for_tasks(self):
        self._all_finished = asyncio.Event()
        for task in self.tasks:
            task._schedule_notify()
        if not self._tasks:
            return
        await self._all_finished.wait()

    async def _invalidate(self):
        if self._is_invalidated:
            return
        self._is_invalidated = True
        if self._transport is not None:
            await self._transport.aclose()
        _logger.debug("Session invalidated")

    async def aclose(self):
        await self.invalidate_and_cancel()

    async def __aenter__(self):
        if self._is_invalidated:
            raise RuntimeError("Cannot open a session that has been invalidated")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self.finish_tasks_and_invalidate()
        else:
            await self.invalidate_and_cancel()

    def __repr__(self):
        return f"<Session [{len(self._tasks)} tasks]>"
