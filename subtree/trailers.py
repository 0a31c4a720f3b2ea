import re
from typing import Iterable

from .types import Trailers

DIR = 'git-subtree-dir'
MAINLINE = 'git-subtree-mainline'
SPLIT = 'git-subtree-split'

_TRAILER_RE = re.compile(r'^([A-Za-z0-9][A-Za-z0-9-]*):\s*(.*)$')


def parse_trailers(message: str) -> Trailers:
    """Parse the trailer block (last paragraph) of a commit message.

    Every line of the paragraph must be a ``Key: value`` line or a
    continuation of one; otherwise the message has no trailers.
    """
    paragraphs = [p for p in re.split(r'\n\s*\n', message.strip()) if p.strip()]
    if len(paragraphs) < 2:
        return {}

    trailers: Trailers = {}
    last = None
    for line in paragraphs[-1].splitlines():
        if line[:1].isspace() and last is not None:
            values = trailers[last]
            values[-1] = f'{values[-1]} {line.strip()}'
            continue
        match = _TRAILER_RE.match(line)
        if not match:
            return {}
        last = match.group(1)
        trailers.setdefault(last, []).append(match.group(2).strip())
    return trailers


def first(trailers: Trailers, key: str) -> str | None:
    values = trailers.get(key)
    return values[0] if values else None


def format_trailers(message: str, pairs: Iterable[tuple[str, str]]) -> str:
    block = ''.join(f'{key}: {value}\n' for key, value in pairs)
    return f'{message.rstrip()}\n\n{block}'
