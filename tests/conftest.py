"""Shared fixtures: an in-memory object store with git's commit graph semantics."""

from __future__ import annotations

import hashlib
import os
import subprocess
from collections import deque
from pathlib import Path

import pytest

from subtree import trailers
from subtree.errors import NotFound
from subtree.types import Commit, LogEntry, Signature, TreeEntry

DEFAULT_SIGNATURE = Signature('Sub Tree', 'subtree@example.com', '1700000000 +0000')


def _hash(*parts) -> str:
    return hashlib.sha1(repr(parts).encode()).hexdigest()


class MemoryStore:
    """Content-addressed commits and trees held in dicts.

    Commits are kept in creation order, which is always a valid oldest-first
    topological order because parents must exist first.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}
        self.trees: dict[str, dict[str, TreeEntry]] = {}
        self.commits: dict[str, Commit] = {}
        self.refs: dict[str, str] = {}
        self.writes: list[str] = []
        self.clean = True
        self.clock = 1_600_000_000

    # -- building history ---------------------------------------------------

    def write_tree(self, files: dict) -> str:
        nested: dict = {}
        for path, value in files.items():
            *dirs, name = path.split('/')
            current = nested
            for dirname in dirs:
                current = current.setdefault(dirname, {})
            current[name] = value

        def write_tree_recursive(tree_dict: dict) -> str:
            entries = {}
            for name, value in tree_dict.items():
                if isinstance(value, dict):
                    entries[name] = TreeEntry('tree', write_tree_recursive(value))
                elif isinstance(value, TreeEntry):
                    entries[name] = value
                else:
                    oid = _hash('blob', value)
                    self.blobs[oid] = value
                    entries[name] = TreeEntry('blob', oid)
            oid = _hash('tree', sorted(entries.items()))
            self.trees[oid] = entries
            return oid

        return write_tree_recursive(nested)

    def commit(self, files: dict, parents=(), message='change', ref: str | None = None) -> str:
        self.clock += 60
        sig = Signature('A U Thor', 'author@example.com', f'{self.clock} +0000')
        oid = self._add(self.write_tree(files), list(parents), sig, sig, f'{message}\n')
        if ref:
            self.refs[ref] = oid
        return oid

    def files(self, tree: str, base: str = '') -> dict[str, str]:
        result = {}
        for name, entry in self.trees[tree].items():
            if entry.kind == 'tree':
                result.update(self.files(entry.oid, f'{base}{name}/'))
            elif entry.kind == 'blob':
                result[base + name] = self.blobs[entry.oid]
        return result

    def _add(self, tree, parents, author, committer, message) -> str:
        oid = _hash('commit', tree, tuple(parents), author, committer, message)
        if oid not in self.commits:
            self.commits[oid] = Commit(tree, list(parents), message, author, committer)
        return oid

    def ancestors(self, oid: str) -> set[str]:
        seen = set()
        queue = deque([oid])
        while queue:
            oid = queue.popleft()
            if oid in seen:
                continue
            seen.add(oid)
            queue.extend(self.commits[oid].parents)
        return seen

    def _select(self, revs, exclude=()) -> set[str]:
        include, excluded = self.resolve_range(revs)
        selected = set()
        for oid in include:
            selected |= self.ancestors(oid)
        for oid in [*excluded, *exclude]:
            selected -= self.ancestors(oid)
        return selected

    # -- ObjectStore ----------------------------------------------------------

    def resolve(self, rev):
        rev = rev.removesuffix('^{commit}')
        rev = self.refs.get(rev, rev)
        if rev not in self.commits:
            raise NotFound(f"'{rev}' does not refer to a commit")
        return rev

    def resolve_range(self, revs):
        include, exclude = [], []
        for rev in revs:
            if '..' in rev:
                old, new = rev.split('..', 1)
                exclude.append(self.resolve(old))
                include.append(self.resolve(new))
            elif rev.startswith('^'):
                exclude.append(self.resolve(rev[1:]))
            else:
                include.append(self.resolve(rev))
        return include, exclude

    def parents(self, oid):
        return list(self.commits[oid].parents)

    def tree(self, oid):
        return self.commits[oid].tree

    def get_commit(self, oid):
        return self.commits[oid]

    def tree_entry(self, tree, path):
        entries = self.trees[tree]
        *dirs, name = path.split('/')
        for dirname in dirs:
            entry = entries.get(dirname)
            if entry is None or entry.kind != 'tree':
                return None
            entries = self.trees[entry.oid]
        return entries.get(name)

    def create_commit(self, tree, parents, author, committer, message):
        oid = self._add(tree, parents, author or DEFAULT_SIGNATURE,
                        committer or DEFAULT_SIGNATURE, message)
        self.writes.append(oid)
        return oid

    def common_ancestor(self, a, b):
        common = self.ancestors(a) & self.ancestors(b)
        best = [c for c in common
                if not any(c != other and c in self.ancestors(other) for other in common)]
        order = list(self.commits)
        return max(best, key=order.index) if best else None

    def commit_count(self, range_):
        old, new = range_.split('..', 1)
        return len(self.ancestors(new) - self.ancestors(old))

    def iter_commits(self, revs, exclude=()):
        selected = self._select(revs, exclude)
        for oid, commit_ in self.commits.items():
            if oid in selected:
                yield oid, list(commit_.parents)

    def log_trailers(self, pattern, revs):
        selected = self._select(revs)
        for oid in reversed(list(self.commits)):
            message = self.commits[oid].message
            if oid not in selected or (pattern is not None and pattern not in message):
                continue
            yield LogEntry(oid, message.splitlines()[0], trailers.parse_trailers(message))

    def get_ref(self, name):
        return self.refs.get(name)

    def update_ref(self, name, oid, message=''):
        self.refs[name] = oid

    def is_clean(self):
        return self.clean


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


# -- real git repositories ---------------------------------------------------


class GitRepo:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.clock = 1_600_000_000
        self.git('init', '-q')
        self.git('config', 'user.name', 'A U Thor')
        self.git('config', 'user.email', 'author@example.com')
        self.git('config', 'commit.gpgsign', 'false')

    def git(self, *args: str) -> str:
        self.clock += 60
        env = {
            'GIT_AUTHOR_DATE': f'@{self.clock} +0000',
            'GIT_COMMITTER_DATE': f'@{self.clock} +0000',
        }
        proc = subprocess.run(['git', '-C', str(self.path), *args], capture_output=True,
                              text=True, check=True,
                              env={**_clean_environ(), **env})
        return proc.stdout.strip()

    def commit(self, files: dict[str, str | None], message='change') -> str:
        for name, content in files.items():
            path = self.path / name
            if content is None:
                path.unlink()
                continue
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        self.git('add', '-A')
        self.git('commit', '-q', '--allow-empty', '-m', message)
        return self.git('rev-parse', 'HEAD')


def _clean_environ() -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if not k.startswith('GIT_')}


@pytest.fixture
def repo(tmp_path: Path) -> GitRepo:
    return GitRepo(tmp_path)
