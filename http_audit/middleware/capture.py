"""
Request/response capture for the audit middleware.

ASGI bodies are streams: once the middleware has read the request body the
application could not read it again, and anything the application sends goes
straight to the client. These two buffers fix that:

  CapturedRequest  — drains the body once, then hands out read cursors that
                     replay it to the downstream app
  CapturedResponse — collects everything the app sends and copies it to the
                     real `send` exactly once, after auditing
"""

from starlette.datastructures import Headers
from starlette.types import Message, Receive, Scope, Send

from http_audit.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHARSET = "utf-8"


def charset_of(content_type: str | None) -> str:
    if not content_type:
        return DEFAULT_CHARSET
    for part in content_type.split(";")[1:]:
        key, _, value = part.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"')
    return DEFAULT_CHARSET


def decode_body(raw: bytes, charset: str, side: str) -> str:
    try:
        return raw.decode(charset)
    except (UnicodeDecodeError, LookupError) as exc:
        logger.error("audit.body_decode_failed", side=side, charset=charset, error=str(exc))
        return ""


class CapturedRequest:
    def __init__(self, raw: bytes, receive: Receive, charset: str = DEFAULT_CHARSET):
        self._raw = raw
        self._receive = receive
        self.charset = charset
        self._body = decode_body(raw, charset, side="request")

    @classmethod
    async def drain(cls, scope: Scope, receive: Receive) -> "CapturedRequest":
        chunks: list[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] != "http.request":
                # Client went away mid-body; keep what we have
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)

        content_type = Headers(scope=scope).get("content-type")
        return cls(b"".join(chunks), receive, charset_of(content_type))

    @property
    def body(self) -> str:
        return self._body

    @body.setter
    def body(self, value: str) -> None:
        if value == self._body:
            return
        self._body = value
        self._raw = value.encode(self.charset)

    @property
    def raw(self) -> bytes:
        return self._raw

    def cursor(self) -> Receive:
        """Fresh ASGI receive: the cached body first, then the real channel."""
        replayed = False
        raw = self._raw

        async def receive() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": raw, "more_body": False}
            return await self._receive()

        return receive


class CapturedResponse:
    def __init__(self):
        self.start: Message | None = None
        self.trailers: list[Message] = []
        self._chunks: list[bytes] = []
        self._flushed = False

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.start = message
        elif message["type"] == "http.response.body":
            self._chunks.append(message.get("body", b""))
        else:
            self.trailers.append(message)

    @property
    def raw(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def headers(self) -> Headers:
        return Headers(raw=self.start["headers"] if self.start else [])

    @property
    def body(self) -> str:
        return decode_body(self.raw, charset_of(self.headers.get("content-type")), side="response")

    @property
    def flushed(self) -> bool:
        return self._flushed

    async def flush(self, send: Send) -> None:
        if self._flushed:
            raise RuntimeError("Response body already copied to the client")
        self._flushed = True
        if self.start is None:
            return
        await send(self.start)
        await send({"type": "http.response.body", "body": self.raw, "more_body": False})
        for message in self.trailers:
            await send(message)
