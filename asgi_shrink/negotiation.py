import re
from typing import Collection, Dict, List, NamedTuple, Optional, Sequence

IDENTITY = "identity"
WILDCARD = "*"

DEFAULT_PREFERENCE = ("br", "gzip", "deflate")

_directive_re = re.compile(
    r"^\s*(gzip|deflate|br|identity|\*)\s*(?:;\s*q\s*=\s*([^\s;]*)\s*)?$",
    re.IGNORECASE,
)


class NotAcceptable(Exception):
    """The client refused every coding the server can produce."""


class Directive(NamedTuple):
    token: str
    weight: float
    position: int


def parse_weight(value: Optional[str]) -> float:
    if not value:
        return 1.0
    try:
        weight = float(value)
    except ValueError:
        return 1.0
    if weight != weight:  # NaN
        return 1.0
    return min(max(weight, 0.0), 1.0)


def parse_accept_encoding(accept_encoding: Optional[str]) -> List[Directive]:
    """Parse an ``Accept-Encoding`` value into its directives.

    Directives outside of the known vocabulary or with a malformed shape are
    dropped. A ``q`` value that cannot be parsed counts as ``1``, and values
    outside of ``[0, 1]`` are clamped.

    >>> parse_accept_encoding("gzip;q=0.5, br")
    [Directive(token='gzip', weight=0.5, position=0), Directive(token='br', weight=1.0, position=1)]
    """
    directives: List[Directive] = []
    if not accept_encoding:
        return directives

    for position, part in enumerate(accept_encoding.split(",")):
        match = _directive_re.match(part)
        if match is None:
            continue
        token, weight = match.groups()
        directives.append(
            Directive(token.lower(), parse_weight(weight), position)
        )
    return directives


def negotiate(
    accept_encoding: Optional[str],
    supported: Collection[str],
    preference: Sequence[str] = DEFAULT_PREFERENCE,
    enforce_encoding: Optional[str] = IDENTITY,
) -> str:
    """Pick the content coding for a response.

    Returns one of ``supported`` or ``"identity"``. Raises
    :class:`NotAcceptable` when the client explicitly excludes identity (or
    everything via ``*;q=0``) and accepts nothing else we can produce.
    """
    order = [token for token in preference if token in supported]
    order += [token for token in supported if token not in order]
    order.append(IDENTITY)

    if not accept_encoding or not accept_encoding.strip():
        if enforce_encoding is None:
            accept_encoding = WILDCARD
        elif enforce_encoding in order:
            return enforce_encoding
        else:
            raise NotAcceptable(
                f"enforced encoding {enforce_encoding!r} is not enabled"
            )

    weights: Dict[str, float] = {}
    wildcard: Optional[float] = None
    for directive in parse_accept_encoding(accept_encoding):
        if directive.token == WILDCARD:
            wildcard = max(wildcard or 0.0, directive.weight)
        elif directive.token in order:
            weights[directive.token] = max(
                weights.get(directive.token, 0.0), directive.weight
            )

    if wildcard is not None:
        for token in order:
            weights.setdefault(token, wildcard)

    acceptable = {token: w for token, w in weights.items() if w > 0}
    if not acceptable:
        if weights.get(IDENTITY) == 0:
            raise NotAcceptable(
                "client accepts none of: " + ", ".join(order)
            )
        return IDENTITY

    best = max(acceptable.values())
    for token in order:
        if acceptable.get(token) == best:
            return token

    return IDENTITY  # pragma: no cover
