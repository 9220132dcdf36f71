from typing import Literal

Encoding = Literal["gzip", "br", "deflate"]
Framework = Literal["django", "starlette", "litestar"]
