# Top-level helpers running a single task on a temporary session

from ._compat import USE_SESSION_DEFAULT
from ._config import SessionConfig
from ._session import Session


async def request(
    method,
    url,
    *,
    headers=None,
    content=None,
    stream=None,
    handler=None,
    credential=None,
    credential_store=None,
    transport=None,
    config=None,
    **config_options,
):
    """Send one request and return the finished Task.

    A temporary Session is created for the call and invalidated before
    returning. Errors are reported on ``task.error`` rather than raised.
    Extra keyword arguments (``timeout``, ``verify``, ``max_challenge_rounds``
    and so on) build the SessionConfig when ``config`` is not given.
    """
    if config is None:
        config = SessionConfig(**config_options)
    elif config_options:
        config = config.copy(**config_options)

    async with Session(
        handler,
        credential_store=credential_store,
        transport=transport,
        config=config,
    ) as session:
        task = session.create_task(
            method=method,
            url=url,
            headers=headers,
            content=content,
            stream=stream,
            handler=USE_SESSION_DEFAULT,
            credential=credential,
        )
        task.resume()
        await task
    return task


async def get(url, **kwargs):
    """Send a GET request."""
    return await request("GET", url, **kwargs)


async def post(url, **kwargs):
    """Send a POST request."""
    return await request("POST", url, **kwargs)
