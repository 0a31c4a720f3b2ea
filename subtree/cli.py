import argparse
import logging
import sys

from . import base
from . import data
from .cache import RevisionCache
from .errors import NoNewRevisions, SubtreeError
from .types import NOTREE

log = logging.getLogger(__name__)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format='%(message)s')
    store = data.GitStore(args.directory)
    try:
        args.func(store, args)
    except (SubtreeError, ValueError) as e:
        print(f'fatal: {e}', file=sys.stderr)
        return 1
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='subtree')
    parser.add_argument('-C', dest='directory', default='.',
                        help='run as if started in this repository')
    parser.add_argument('-q', '--quiet', dest='log_level', action='store_const',
                        const=logging.WARNING, default=logging.INFO)
    parser.add_argument('-d', '--debug', dest='log_level', action='store_const',
                        const=logging.DEBUG)
    commands = parser.add_subparsers(dest='command')
    commands.required = True

    split_parser = commands.add_parser('split')
    split_parser.set_defaults(func=split)
    split_parser.add_argument('-P', '--prefix', required=True)
    split_parser.add_argument('--onto')
    split_parser.add_argument('--rejoin', action='store_true')
    split_parser.add_argument('--ignore-joins', action='store_true')
    split_parser.add_argument('--annotate', default='')
    split_parser.add_argument('-b', '--branch')
    split_parser.add_argument('-m', '--message')
    split_parser.add_argument('rev', nargs='*', default=['HEAD'])

    squash_parser = commands.add_parser('squash')
    squash_parser.set_defaults(func=squash)
    squash_parser.add_argument('-P', '--prefix', required=True)
    squash_parser.add_argument('range')

    map_parser = commands.add_parser('map')
    map_parser.set_defaults(func=map_)
    map_parser.add_argument('-P', '--prefix', required=True)
    map_parser.add_argument('rev')
    map_parser.add_argument('old', nargs='*')

    return parser.parse_args(argv)


def _split_options(args):
    options = {'rejoin': args.rejoin, 'ignore_joins': args.ignore_joins,
               'annotate': args.annotate}
    for name in ('onto', 'branch', 'message'):
        if getattr(args, name):
            options[name] = getattr(args, name)
    return options


def split(store, args):
    print(base.split(store, args.prefix, args.rev, **_split_options(args)))


def squash(store, args):
    print(base.squash(store, args.prefix, args.range))


def map_(store, args):
    cache = RevisionCache()
    try:
        base.split(store, args.prefix, args.rev, cache=cache)
    except NoNewRevisions:
        log.warning('No new revisions under %s; showing recovered mapping only', args.rev)

    for name in args.old or [args.rev]:
        old = base.resolve_one(store, name)
        new = base.map_old_to_new(cache, old)
        if new is NOTREE:
            new = 'notree'
        elif new is None:
            new = 'unknown'
        print(f'{old} {new}')
