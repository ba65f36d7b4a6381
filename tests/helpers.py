"""Response builders for MockTransport handlers."""

import httpx

BASE_URL = "https://graph.test/v1.0"


def json_response(status: int, payload=None, **kwargs) -> httpx.Response:
    return httpx.Response(status, json=payload if payload is not None else {}, **kwargs)


def graph_error(status: int, message: str, **kwargs) -> httpx.Response:
    return httpx.Response(
        status,
        json={"error": {"code": "Error", "message": message}},
        **kwargs,
    )


def scripted(*responses):
    """Handler replaying ``responses`` in order and recording requests."""
    queue = list(responses)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    handler.requests = seen
    return handler
