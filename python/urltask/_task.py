# Task: one logical request and the exchanges needed to complete it

import asyncio
import enum

from ._auth import DigestAuth, auth_for, authorization_header_name
from ._challenge import Challenge, ChallengeDisposition, challenges_from_response
from ._compat import _logger
from ._config import REJECT_EXHAUSTION_FAIL
from ._credentials import AuthScheme, ProtectionSpace
from ._exceptions import (
    Cancelled,
    ChallengeCancelled,
    InvalidState,
    ServerTrustRejected,
    StreamConsumed,
    TaskError,
    TransportError,
)
from ._handler import _invoke
from ._transports import SERVER_TRUST_EXTENSION, ServerTrustSignal


class TaskState(enum.Enum):
    CREATED = "created"
    SENDING = "sending"
    AWAITING_CHALLENGE_DECISION = "awaiting_challenge_decision"
    RETRYING = "retrying"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self):
        return self in (TaskState.COMPLETED, TaskState.FAILED)


class Task:
    """A single logical request driven through one or more exchanges.

    Tasks are created by ``Session.create_task`` and start when
    ``resume()`` is called from a running event loop. The first exchange is
    sent as described; every authentication challenge the server answers
    with is put to the handler, and the exchange is re-sent with credentials
    when the handler (or default handling) provides them.

    A task finishes exactly once, as COMPLETED with ``response`` set or as
    FAILED with ``error`` set, and then calls ``Handler.on_complete``. Errors
    are never raised out of the task: await ``task.wait()`` (or the task
    itself) and inspect ``task.error``.

    ``resume()`` is only valid in the CREATED state; calling it on a running
    or finished task raises InvalidState.
    """

    def __init__(
        self,
        session,
        request,
        *,
        task_identifier,
        handler,
        credential=None,
        validation_error=None,
    ):
        self._session = session
        self.task_identifier = task_identifier
        self.original_request = request
        self.current_request = request
        self.response = None
        self.error = None
        self.challenge_count = 0
        self.task_description = None
        self._handler = handler
        self._credential = credential
        self._validation_error = validation_error
        self._state = TaskState.CREATED
        self._runner = None
        self._running = False
        self._notify_pending = False
        self._done = asyncio.Event()
        self._cancel_error = None
        self._exchange_count = 0
        self._tried = {}
        self._failure_counts = {}
        self._last_credentials = {}
        self._digest_auths = {}
        self._authorized_request = None

    @property
    def state(self):
        return self._state

    @property
    def is_terminal(self):
        return self._state.is_terminal

    @property
    def handler(self):
        return self._handler

    @property
    def session(self):
        return self._session

    @property
    def credential(self):
        return self._credential

    @property
    def exchange_count(self):
        """Number of exchanges handed to the transport so far."""
        return self._exchange_count

    def set_credential(self, credential):
        """Credential offered by default handling before the credential store."""
        if self.is_terminal:
            raise InvalidState(f"Cannot set a credential on finished {self!r}", task=self)
        self._credential = credential

    def resume(self):
        """Start the task on the running event loop."""
        if self._state is not TaskState.CREATED or self._runner is not None:
            raise InvalidState(
                f"Cannot resume {self!r} in state {self._state.name}", task=self
            )
        loop = asyncio.get_running_loop()
        self._runner = loop.create_task(self._run())
        return self

    def cancel(self):
        """Cancel the task.

        While sending, the transport call is aborted and the task fails with
        Cancelled. While a challenge decision is pending it fails with
        ChallengeCancelled. Before resume() it fails at once; with no event
        loop running, on_complete waits for the next wait(). Returns False if
        the task had already finished.
        """
        return self._abort(Cancelled(f"{self!r} was cancelled", task=self))

    def _abort(self, error):
        if self.is_terminal:
            return False
        if self._runner is None or not self._running:
            # Not started yet: finish here, the runner will never get to
            if self._runner is not None:
                self._runner.cancel()
            self._finish(error)
            self._notify_pending = True
            try:
                self._schedule_notify()
            except RuntimeError:
                # No running loop: wait() delivers on_complete instead
                pass
            return True
        if self._cancel_error is None:
            self._cancel_error = error
            self._runner.cancel()
        return True

    def _schedule_notify(self):
        if self._notify_pending:
            self._runner = asyncio.get_running_loop().create_task(self._notify())
            self._notify_pending = False

    async def wait(self):
        """Wait for the task to finish and return it."""
        if self._runner is None and not self.is_terminal:
            raise InvalidState(f"{self!r} has not been resumed", task=self)
        self._schedule_notify()
        await self._done.wait()
        return self

    def __await__(self):
        return self.wait().__await__()

    async def _run(self):
        self._running = True
        error = None
        try:
            if self._validation_error is not None:
                raise self._validation_error
            await self._exchange_loop()
        except asyncio.CancelledError:
            error = self._cancel_error or Cancelled(f"{self!r} was cancelled", task=self)
            if (
                isinstance(error, Cancelled)
                and self._state is TaskState.AWAITING_CHALLENGE_DECISION
            ):
                error = ChallengeCancelled(
                    "Authentication challenge cancelled with the task", task=self
                )
        except (TaskError, TransportError) as exc:
            error = exc
        except Exception as exc:
            _logger.debug("%r failed unexpectedly", self, exc_info=True)
            error = TransportError(
                str(exc) or exc.__class__.__name__,
                request=self.current_request,
                cause=exc,
            )
        if isinstance(error, TaskError) and error.task is None:
            error.task = self
        self._finish(error)
        await self._notify()

    def _finish(self, error=None):
        if self.is_terminal:
            return False
        self.error = error
        self._state = TaskState.FAILED if error is not None else TaskState.COMPLETED
        if error is None:
            _logger.debug("%r completed after %d challenge(s)", self, self.challenge_count)
        else:
            _logger.debug("%r failed: %r", self, error)
        return True

    async def _notify(self):
        response = self.response if self.error is None else None
        try:
            await self._call_handler(self._handler.on_complete, response, self.error)
        finally:
            self._done.set()
            self._session._task_finished(self)

    async def _call_handler(self, callback, *args):
        try:
            return await _invoke(callback, self, *args)
        except asyncio.CancelledError:
            raise
        except Exception:
            _logger.warning(
                "Handler %s raised for %r", getattr(callback, "__name__", callback), self,
                exc_info=True,
            )
            return None

    async def _exchange_loop(self):
        config = self._session.config
        request = self._first_request()
        self._state = TaskState.SENDING

        while True:
            try:
                response = await self._send(request)
            except ServerTrustSignal as signal:
                response = None
                challenge = self._trust_challenge(signal)
            else:
                offered = challenges_from_response(request, response)
                if not offered:
                    await self._deliver(response, request is self._authorized_request)
                    return
                # Challenge bodies are held back until they turn out to be final
                await response.aread()
                challenge = self._auth_challenge(request, response, offered)

            self.challenge_count += 1
            _logger.debug("%r received %r", self, challenge)
            if self.challenge_count > config.max_challenge_rounds:
                _logger.debug(
                    "%r exceeded %d challenge round(s)", self, config.max_challenge_rounds
                )
                return await self._give_up(challenge, response)

            self._state = TaskState.AWAITING_CHALLENGE_DECISION
            next_request = await self._answer(request, challenge)
            if next_request is None:
                return await self._give_up(challenge, response)

            self._state = TaskState.RETRYING
            request = next_request

    def _first_request(self):
        request = self.original_request
        overridden = set(request.headers.keys())
        headers = [
            (key, value)
            for key, value in self._session.config.headers.raw
            if key.decode("latin-1").lower() not in overridden
        ]
        return request.copy_with(headers=headers + request.headers.raw)

    async def _send(self, request):
        self.current_request = request
        if request.stream is not None:
            source = await _invoke(self._handler.on_need_body_stream, self)
            try:
                request.bind_body(source)
            except StreamConsumed as exc:
                exc.task = self
                raise
        else:
            request.bind_body()

        self._exchange_count += 1
        response = await self._session.transport.handle_async_request(request)
        if response.request is None:
            response.request = request
        self.response = response

        _logger.info(
            f'HTTP Request: {request.method} {request.url} '
            f'"{response.http_version} {response.status_code} {response.reason_phrase}"'
        )
        await self._call_handler(self._handler.on_response, response)
        return response

    async def _deliver(self, response, authenticated):
        response._authenticated = authenticated
        async for chunk in response.aiter_bytes():
            await self._call_handler(self._handler.on_body, chunk)

    async def _give_up(self, challenge, response):
        if challenge.is_server_trust:
            raise ServerTrustRejected(
                f"Server trust for {challenge.protection_space.host} was not accepted",
                request=self.current_request,
                cause=challenge.error,
            )
        if response.content:
            await self._call_handler(self._handler.on_body, response.content)

    def _trust_challenge(self, signal):
        space = ProtectionSpace(
            host=signal.host,
            port=signal.port,
            realm=None,
            scheme=AuthScheme.SERVER_TRUST,
            secure=True,
        )
        return self._new_challenge(space, {}, None, signal.cause or signal, ())

    def _auth_challenge(self, request, response, offered):
        space, params = offered[0]
        return self._new_challenge(space, params, response, None, tuple(offered[1:]))

    def _new_challenge(self, space, params, response, error, alternatives):
        previous = self._failure_counts.get(space, 0)
        self._failure_counts[space] = previous + 1
        proposed = self._last_credentials.get(space)
        if proposed is None and not space.is_server_trust:
            proposed = self._session.credential_store.lookup(space)
        return Challenge(
            protection_space=space,
            previous_failure_count=previous,
            parameters=dict(params),
            failure_response=response,
            proposed_credential=proposed,
            error=error,
            alternatives=alternatives,
        )

    async def _answer(self, request, challenge):
        """Return the next request to send, or None to stop with this response."""
        space = challenge.protection_space
        last = self._last_credentials.get(space)
        if challenge.stale and last is not None and space.scheme is AuthScheme.DIGEST:
            # Only the nonce expired; the credential itself was accepted
            _logger.debug("%r retrying stale nonce for %s", self, space)
            return self._authorize(request, space, challenge.parameters, last)

        decision = await self._session.resolver.resolve(self, challenge, self._handler)
        disposition = decision.disposition
        _logger.debug("%r challenge disposition: %s", self, disposition.name)

        if disposition is ChallengeDisposition.USE_CREDENTIAL:
            return self._authorize(request, space, challenge.parameters, decision.credential)
        if disposition is ChallengeDisposition.CANCEL_AUTHENTICATION_CHALLENGE:
            raise ChallengeCancelled(
                f"Authentication challenge for {space} was cancelled", task=self
            )
        if disposition is ChallengeDisposition.REJECT_PROTECTION_SPACE:
            candidate = self._next_candidate(challenge)
            if candidate is not None:
                return self._authorize(request, *candidate)
            if self._session.config.reject_exhaustion == REJECT_EXHAUSTION_FAIL:
                raise ChallengeCancelled(
                    f"No remaining credentials for {space}", task=self
                )
            _logger.debug("%r exhausted candidates for %s", self, space)
        return self._default_handling(request, challenge)

    def _next_candidate(self, challenge):
        store = self._session.credential_store
        spaces = ((challenge.protection_space, challenge.parameters),) + challenge.alternatives
        for space, params in spaces:
            credential = store.next_candidate(space, excluding=self._tried.get(space, ()))
            if credential is not None:
                return space, params, credential
        return None

    def _default_handling(self, request, challenge):
        if challenge.is_server_trust:
            return None
        space = challenge.protection_space
        tried = self._tried.get(space, set())
        store = self._session.credential_store
        for credential in (self._credential, store.lookup(space)):
            if credential is None or not credential.has_password:
                continue
            if credential.identity in tried:
                continue
            return self._authorize(request, space, challenge.parameters, credential)
        return None

    def _authorize(self, request, space, params, credential):
        self._tried.setdefault(space, set()).add(credential.identity)
        if space.is_server_trust:
            extensions = dict(request.extensions)
            extensions[SERVER_TRUST_EXTENSION] = credential
            return request.copy_with(extensions=extensions)

        auth = self._auth_builder(space.scheme, credential)
        headers = request.headers.copy()
        headers[authorization_header_name(space)] = auth.build_authorization(request, params)
        self._last_credentials[space] = credential
        retry = request.copy_with(headers=headers)
        self._authorized_request = retry
        return retry

    def _auth_builder(self, scheme, credential):
        if scheme is not AuthScheme.DIGEST:
            return auth_for(scheme, credential)
        key = credential.identity
        if key not in self._digest_auths:
            self._digest_auths[key] = DigestAuth(credential.user, credential.password)
        return self._digest_auths[key]

    def __repr__(self):
        return (
            f"<Task {self.task_identifier} [{self.original_request.method} "
            f"{self.original_request.url}] {self._state.name}>"
        )
