#!/usr/bin/env python3
"""
Command-line access to bracket generation and match scoring.

Usage:
    python src/generate_bracket.py metadata 5
    python src/generate_bracket.py create-event "Spring Open" --start-date 2026-03-01
    python src/generate_bracket.py register <event_id> competitors.yaml
    python src/generate_bracket.py generate <event_id>
    python src/generate_bracket.py show <event_id>
    python src/generate_bracket.py score <match_id> <competitor_id> HEAD_KICK
    python src/generate_bracket.py undo <match_id>
    python src/generate_bracket.py winner <match_id> <competitor_id> SCORE

Exit codes:
    0: Success
    1: Invalid value or unreadable input file
    2: Invalid participant count, action, winner, or nothing to undo
    3: Event or match not found
    4: Match already completed
"""
import argparse
import logging
import os
import sys

import yaml

from core.bracket import get_bracket_metadata, get_round_name
from core.errors import (
    BracketError, EventNotFound, MatchAlreadyCompleted, MatchNotFound,
)
from core.service import TournamentService
from core.storage import EventStore

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INVALID = 2
EXIT_NOT_FOUND = 3
EXIT_COMPLETED = 4


def exit_code_for(error: BracketError) -> int:
    if isinstance(error, (EventNotFound, MatchNotFound)):
        return EXIT_NOT_FOUND
    if isinstance(error, MatchAlreadyCompleted):
        return EXIT_COMPLETED
    return EXIT_INVALID


def load_competitors(file_path):
    """Load competitors from a YAML list of {id, name, affiliation, status} entries.

    Plain values (names or numbers) are accepted too and used as both id and name.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or []
    competitors = []
    for entry in data:
        if not isinstance(entry, dict):
            competitors.append({'id': str(entry), 'name': str(entry)})
        else:
            competitors.append(entry)
    return competitors


def format_competitor(competitor_id, names):
    if competitor_id is None:
        return 'TBD'
    return names.get(competitor_id, competitor_id)


def print_bracket(event):
    names = {c['id']: c['name'] for c in event['competitors']}
    matches = event['matches']
    if not matches:
        print("No bracket generated.")
        return
    total_rounds = max(m['round'] for m in matches)
    current_round = None
    for match in matches:
        if match['round'] != current_round:
            if current_round is not None:
                print()
            current_round = match['round']
            print(f"# {get_round_name(current_round, total_rounds)}")
        line = (f"{match['match_code']} [{match['arena']}] "
                f"{format_competitor(match['competitor_a'], names)} vs "
                f"{format_competitor(match['competitor_b'], names)} - {match['status']}")
        if match['winner']:
            line += f" (winner: {format_competitor(match['winner'], names)})"
        print(line)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Generate and score single elimination brackets',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--data-dir',
                        default=os.environ.get('BRACKET_DATA_DIR', os.path.join(
                            os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')),
                        help='Directory holding event data')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log debug output')
    commands = parser.add_subparsers(dest='command', required=True)

    metadata = commands.add_parser('metadata', help='Show bracket layout for N participants')
    metadata.add_argument('participants', type=int)

    create = commands.add_parser('create-event', help='Create an event')
    create.add_argument('name')
    create.add_argument('--start-date')
    create.add_argument('--end-date')
    create.add_argument('--location')

    register = commands.add_parser('register', help='Register competitors from a YAML file')
    register.add_argument('event_id')
    register.add_argument('competitors_file')

    generate = commands.add_parser('generate', help='Draw a new bracket for an event')
    generate.add_argument('event_id')

    show = commands.add_parser('show', help='Print the bracket of an event')
    show.add_argument('event_id')

    score = commands.add_parser('score', help='Apply a scoring action')
    score.add_argument('match_id')
    score.add_argument('competitor_id')
    score.add_argument('action')
    score.add_argument('--performed-by')

    undo = commands.add_parser('undo', help='Undo the last scoring action of a match')
    undo.add_argument('match_id')

    winner = commands.add_parser('winner', help='Declare the winner of a match')
    winner.add_argument('match_id')
    winner.add_argument('winner_id')
    winner.add_argument('method', nargs='?', default='SCORE')

    return parser


def run(args) -> int:
    if args.command == 'metadata':
        if args.participants < 1:
            print("Error: participants must be at least 1", file=sys.stderr)
            return EXIT_USAGE
        meta = get_bracket_metadata(args.participants)
        for key, value in meta.items():
            print(f"{key}: {value}")
        return EXIT_OK

    service = TournamentService(EventStore(args.data_dir))

    if args.command == 'create-event':
        event = service.create_event(args.name, args.start_date, args.end_date, args.location)
        print(f"{event.id} {event.event_code}")
    elif args.command == 'register':
        try:
            competitors = load_competitors(args.competitors_file)
        except (OSError, yaml.YAMLError) as e:
            print(f"Error: cannot read {args.competitors_file}: {e}", file=sys.stderr)
            return EXIT_USAGE
        roster = service.register_competitors(args.event_id, competitors)
        print(f"{len(roster)} competitor(s) registered")
    elif args.command == 'generate':
        matches = service.generate_event_bracket(args.event_id)
        print(f"Generated {len(matches)} matches")
        print_bracket(service.get_event(args.event_id))
    elif args.command == 'show':
        print_bracket(service.get_event(args.event_id))
    elif args.command == 'score':
        match = service.apply_score_action(args.match_id, args.competitor_id, args.action,
                                           performed_by=args.performed_by)
        for row in match['scores']:
            print(f"{row['competitor_id']}: {row['total_score']}")
    elif args.command == 'undo':
        result = service.undo_last_action(args.match_id)
        print(f"Undid action: {result['undone_action']}")
    elif args.command == 'winner':
        result = service.set_winner(args.match_id, args.winner_id, args.method)
        print(f"{result['match_code']} won by {args.winner_id}")
        if result['event_completed']:
            print("Event completed")
    return EXIT_OK


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        return run(args)
    except BracketError as e:
        print(f"Error: {e}", file=sys.stderr)
        return exit_code_for(e)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == '__main__':
    sys.exit(main())
