import argparse
import logging
import os
import random

import yaml

from raceday.commands import CreateTournamentRequest
from raceday.config import load_settings
from raceday.errors import TournamentError
from raceday.simulator import simulate_tournament
from raceday.store import MemoryStore, YamlStore
from raceday.tournament import TournamentManager


def load_players(file_path):
    """
    Read players from YAML, either a list of names or a mapping of
    name -> rating (rating may be empty).
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        data = yaml.safe_load(file) or {}
    if isinstance(data, list):
        return [str(name) for name in data], {}
    players = [str(name) for name in data]
    ratings = {str(name): float(rating) for name, rating in data.items() if rating is not None}
    return players, ratings


def print_tournament(details):
    print(f"# {details['name']} ({details['elimination_type']} elimination)")
    print(f"Matches per player: {details['min_matches_per_player']}-{details['max_matches_per_player']}")
    print(f"Recommended tracks: {details['group_stage_track_count']} (groups), "
          f"{details['bracket_track_count']} (bracket)")

    for group in details['groups']:
        print()
        print(f"# Group {group['letter']}")
        for player in group['players']:
            print(f"{player['rank']}. {player['name']} (seed {player['seed']}) {player['wins']}-{player['losses']}")

    for group_round in details['group_stage']:
        print()
        print(f"# Group stage {group_round['name']}")
        for match in group_round['matches']:
            track = f" [{match['track']}]" if match['track'] else ''
            result = f" -> {match['winner']}" if match['winner'] else ''
            print(f"Group {match['group']}: {match['name_a']} vs {match['name_b']}{track}{result}")

    for stage in details['stages']:
        print()
        print(f"# {stage['name']}")
        for entry in stage['matches']:
            side_a, side_b = (p['name'] for p in entry['participants'])
            match = entry['match']
            result = f" -> {match['winner']}" if match and match['winner'] else ''
            print(f"{entry['name']}: {side_a} vs {side_b}{result}")

    if details['champion']:
        print()
        print(f"Champion: {details['champion_name']}")


def main():
    parser = argparse.ArgumentParser(description='Generate a group stage and bracket from a player list.')
    parser.add_argument('players_file', help='YAML file with players (list of names or name: rating)')
    parser.add_argument('--groups', type=int, default=2, help='Number of groups')
    parser.add_argument('--advance', type=int, default=2, help='Players advancing from each group')
    parser.add_argument('--elimination', choices=['single', 'double'], default='single')
    parser.add_argument('--name', default='Tournament')
    parser.add_argument('--config', help='Settings YAML file')
    parser.add_argument('--save', action='store_true', help='Store the tournament in the data directory')
    parser.add_argument('--simulate', action='store_true', help='Play out every match using player ratings')
    parser.add_argument('--seed', type=int, help='Random seed for --simulate')
    args = parser.parse_args()

    settings = load_settings(args.config)
    logging.basicConfig(level=settings.log_level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    players, ratings = load_players(args.players_file)
    session = os.path.splitext(os.path.basename(args.players_file))[0]
    store = YamlStore(settings.data_dir, settings.lock_timeout) if args.save else MemoryStore()
    manager = TournamentManager(
        store,
        signups=lambda _: players,
        ratings=lambda ids: {i: ratings[i] for i in ids if i in ratings},
        settings=settings,
    )

    request = CreateTournamentRequest(
        session=session,
        name=args.name,
        groups_count=args.groups,
        advancement_count=args.advance,
        elimination_type=args.elimination,
    )
    try:
        details = manager.create_tournament(request)
        if args.simulate:
            simulate_tournament(manager, details['id'], ratings, random.Random(args.seed))
            details = manager.get_tournament(details['id'])
    except (TournamentError, ValueError) as e:
        parser.exit(1, f"Error: {e}\n")

    print_tournament(details)


if __name__ == '__main__':
    main()
