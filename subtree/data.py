import logging
import os
import re
import subprocess
from typing import Iterable, Iterator

from . import trailers
from .errors import IntegrityError, NotFound, StoreError
from .types import OID, Commit, LogEntry, Path, Signature, TreeEntry

log = logging.getLogger(__name__)

_SIGNATURE_RE = re.compile(r'^(.*) <(.*)> (\d+ [+-]\d{4})$')


def parse_signature(value: str) -> Signature:
    match = _SIGNATURE_RE.match(value)
    if not match:
        raise IntegrityError(f'malformed signature {value!r}')
    return Signature(*match.groups())


def parse_commit(oid: OID, raw: str) -> Commit:
    headers, _, message = raw.partition('\n\n')
    tree = None
    parents = []
    author = committer = None
    for line in headers.splitlines():
        if line.startswith(' '):
            continue  # continuation of a multi-line header such as gpgsig
        key, _, value = line.partition(' ')
        if key == 'tree':
            tree = value
        elif key == 'parent':
            parents.append(value)
        elif key == 'author':
            author = parse_signature(value)
        elif key == 'committer':
            committer = parse_signature(value)

    if tree is None or author is None or committer is None:
        raise IntegrityError(f'commit {oid} lacks a tree, author or committer')
    return Commit(tree=tree, parents=parents, message=message,
                  author=author, committer=committer)


def _read_records(stream, sep='\x1e') -> Iterator[str]:
    pending = []
    for line in stream:
        while sep in line:
            head, _, line = line.partition(sep)
            record = ''.join([*pending, head]).lstrip('\n')
            pending = []
            if record:
                yield record
        pending.append(line)


class GitStore:
    """The object store of a git repository, driven through ``git``."""

    def __init__(self, path: str | os.PathLike = '.'):
        self.path = os.fspath(path)
        self._trees: dict[OID, OID] = {}

    def _run(self, *args, input=None, env=None):
        log.debug('+ git %s', ' '.join(args))
        return subprocess.run(['git', '-C', self.path, *args], input=input, env=env,
                              capture_output=True, encoding='utf-8', errors='surrogateescape')

    def _git(self, *args, input=None, env=None) -> str:
        proc = self._run(*args, input=input, env=env)
        if proc.returncode != 0:
            raise StoreError(f'git {args[0]} failed: {proc.stderr.strip()}')
        return proc.stdout

    def resolve(self, rev: str) -> OID:
        proc = self._run('rev-parse', '--verify', '--quiet', f'{rev}^{{commit}}')
        if proc.returncode != 0:
            raise NotFound(f"'{rev}' does not refer to a commit")
        return proc.stdout.strip()

    def resolve_range(self, revs: Iterable[str]) -> tuple[list[OID], list[OID]]:
        revs = list(revs)
        proc = self._run('rev-parse', '--revs-only', *revs)
        if proc.returncode != 0:
            raise NotFound(f'could not resolve {" ".join(revs)}: {proc.stderr.strip()}')
        include, exclude = [], []
        for line in proc.stdout.split():
            if line.startswith('^'):
                exclude.append(self.resolve(line[1:]))
            else:
                include.append(self.resolve(line))
        return include, exclude

    def parents(self, oid: OID) -> list[OID]:
        line = self._git('rev-list', '--parents', '-n', '1', oid, '--')
        return line.split()[1:]

    def tree(self, oid: OID) -> OID:
        if oid not in self._trees:
            self._trees[oid] = self._git('rev-parse', '--verify', f'{oid}^{{tree}}').strip()
        return self._trees[oid]

    def get_commit(self, oid: OID) -> Commit:
        return parse_commit(oid, self._git('cat-file', 'commit', oid))

    def tree_entry(self, tree: OID, path: Path) -> TreeEntry | None:
        out = self._git('ls-tree', '-z', '--full-tree', tree, '--', path)
        entries = [e for e in out.split('\0') if e]
        if not entries:
            return None
        if len(entries) != 1:
            raise IntegrityError(f'{tree}: expected one entry at {path}, got {len(entries)}')
        info, _, name = entries[0].partition('\t')
        fields = info.split()
        if name != path or len(fields) != 3:
            raise IntegrityError(f'{tree}: unexpected tree listing {entries[0]!r} for {path}')
        _, type_, oid = fields
        if type_ not in ('tree', 'blob', 'commit'):
            raise IntegrityError(f'{tree}: unknown tree entry type {type_}')
        return TreeEntry(type_, oid)

    def create_commit(self, tree: OID, parents: list[OID], author: Signature | None,
                      committer: Signature | None, message: str) -> OID:
        env = dict(os.environ)
        for role, sig in (('AUTHOR', author), ('COMMITTER', committer)):
            if sig is not None:
                env[f'GIT_{role}_NAME'] = sig.name
                env[f'GIT_{role}_EMAIL'] = sig.email
                env[f'GIT_{role}_DATE'] = f'@{sig.date}'
        args = ['commit-tree', tree]
        for parent in parents:
            args += ['-p', parent]
        return self._git(*args, input=message, env=env).strip()

    def common_ancestor(self, a: OID, b: OID) -> OID | None:
        proc = self._run('merge-base', a, b)
        if proc.returncode == 1:
            return None
        if proc.returncode != 0:
            raise StoreError(f'git merge-base failed: {proc.stderr.strip()}')
        return proc.stdout.strip()

    def commit_count(self, range_: str) -> int:
        return int(self._git('rev-list', '--count', range_, '--'))

    def iter_commits(self, revs: Iterable[str],
                     exclude: Iterable[OID] = ()) -> Iterator[tuple[OID, list[OID]]]:
        args = [*revs, *(f'^{oid}' for oid in exclude)]
        out = self._git('rev-list', '--topo-order', '--reverse', '--parents', *args, '--')
        for line in out.splitlines():
            rev, *parents = line.split()
            yield rev, parents

    def log_trailers(self, pattern: str | None, revs: Iterable[str]) -> Iterator[LogEntry]:
        args = ['log', '--no-show-signature', '--format=%H%x00%s%x00%B%x1e']
        if pattern is not None:
            args += ['--fixed-strings', f'--grep={pattern}']
        args += [*revs, '--']
        log.debug('+ git %s', ' '.join(args))
        with subprocess.Popen(['git', '-C', self.path, *args], stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE, encoding='utf-8',
                              errors='surrogateescape') as proc:
            try:
                for record in _read_records(proc.stdout):
                    oid, subject, body = record.split('\0', 2)
                    yield LogEntry(oid, subject, trailers.parse_trailers(body))
                if proc.wait() != 0:
                    raise StoreError(f'git log failed: {proc.stderr.read().strip()}')
            finally:
                # the caller stopped reading early
                if proc.poll() is None:
                    proc.terminate()

    def get_ref(self, name: str) -> OID | None:
        proc = self._run('rev-parse', '--verify', '--quiet', name)
        if proc.returncode != 0:
            return None
        return proc.stdout.strip()

    def update_ref(self, name: str, oid: OID, message: str = '') -> None:
        args = ['update-ref']
        if message:
            args += ['-m', message]
        self._git(*args, name, oid)

    def is_clean(self) -> bool:
        return not self._git('status', '--porcelain', '--untracked-files=no').strip()
