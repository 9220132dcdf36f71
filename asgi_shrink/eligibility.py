import logging
import re
from typing import Callable, NamedTuple, Optional

from .compressible import is_compressible
from .types import RequestInfo, ResponseInfo

logger = logging.getLogger(__name__)

Filter = Callable[[RequestInfo, ResponseInfo], bool]

_no_transform_re = re.compile(
    r"(?:^|,)\s*no-transform\s*(?:,|$)", re.IGNORECASE
)
_content_length_re = re.compile(r"[0-9]+")


class Eligibility(NamedTuple):
    eligible: bool
    vary: bool
    reason: str = ""


def should_compress(request: RequestInfo, response: ResponseInfo) -> bool:
    """Default filter: compress only compressible content types."""
    content_type = response.headers.get("content-type")
    if not is_compressible(content_type):
        logger.debug("%s not compressible", content_type)
        return False
    return True


def should_transform(cache_control: Optional[str]) -> bool:
    # https://tools.ietf.org/html/rfc7234#section-5.2.2.4
    return not cache_control or not _no_transform_re.search(cache_control)


def has_body(status_code: int) -> bool:
    # https://www.rfc-editor.org/rfc/rfc9110#section-6.4.1
    return status_code >= 200 and status_code not in (204, 304)


def parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None or not _content_length_re.fullmatch(value.strip()):
        return None
    return int(value.strip())


def check_eligibility(
    request: RequestInfo,
    response: ResponseInfo,
    *,
    filter: Filter = should_compress,
    threshold: Optional[int] = 1024,
    length: Optional[int] = None,
) -> Eligibility:
    """Decide whether compression should be attempted for a response.

    ``length`` is the body size when it is known without a ``Content-Length``
    header (a response finished in a single ``end()``); ``None`` means the
    size is unknown and counts as over the threshold.

    ``vary`` tells whether ``Vary: Accept-Encoding`` belongs on the response:
    it does unless the entity must not be transformed or was filtered out.
    """
    headers = response.headers

    if not should_transform(headers.get_joined("cache-control")):
        return Eligibility(False, False, "no transform")

    passes_filter = filter(request, response)

    if request.method == "HEAD":
        return Eligibility(False, passes_filter, "HEAD request")

    if not has_body(response.status_code):
        return Eligibility(False, passes_filter, "no body allowed")

    encoding = headers.get("content-encoding", "").strip().lower()
    if encoding not in ("", "identity"):
        return Eligibility(False, passes_filter, "already encoded")

    if not passes_filter:
        return Eligibility(False, False, "filtered")

    if threshold is not None:
        size = parse_content_length(headers.get("content-length"))
        if size is None and "content-length" not in headers:
            size = length
        if size is not None and size < threshold:
            return Eligibility(False, True, "size below threshold")

    return Eligibility(True, True)
