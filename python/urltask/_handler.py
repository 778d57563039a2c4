# Handler capability set with default implementations

import inspect

from ._challenge import DEFAULT_HANDLING


class Handler:
    """Callbacks a task makes while it runs.

    Subclass and override only what you need; every method has a default.
    Any method may be ``async``.
    """

    def on_response(self, task, response):
        """Called with the head of every exchange's response."""
        pass

    def on_body(self, task, chunk):
        """Called for each chunk of the final response body."""
        pass

    def on_challenge(self, task, challenge):
        """Decide how to answer an authentication or server-trust challenge."""
        return DEFAULT_HANDLING

    def on_need_body_stream(self, task):
        """Return the stream source for the next exchange's body.

        Called before every exchange of a task whose request has a stream.
        The default returns the request's own source.
        """
        return task.original_request.stream

    def on_complete(self, task, response, error):
        """Called once when the task reaches a terminal state."""
        pass


class FunctionHandler(Handler):
    """Handler assembled from plain callables."""

    def __init__(
        self,
        *,
        on_response=None,
        on_body=None,
        on_challenge=None,
        on_need_body_stream=None,
        on_complete=None,
    ):
        self._on_response = on_response
        self._on_body = on_body
        self._on_challenge = on_challenge
        self._on_need_body_stream = on_need_body_stream
        self._on_complete = on_complete

    def on_response(self, task, response):
        if self._on_response is not None:
            return self._on_response(task, response)

    def on_body(self, task, chunk):
        if self._on_body is not None:
            return self._on_body(task, chunk)

    def on_challenge(self, task, challenge):
        if self._on_challenge is not None:
            return self._on_challenge(task, challenge)
        return super().on_challenge(task, challenge)

    def on_need_body_stream(self, task):
        if self._on_need_body_stream is not None:
            return self._on_need_body_stream(task)
        return super().on_need_body_stream(task)

    def on_complete(self, task, response, error):
        if self._on_complete is not None:
            return self._on_complete(task, response, error)

    def __repr__(self):
        return "<FunctionHandler>"


async def _invoke(callback, *args):
    """Call a handler method, awaiting it when it is async."""
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
