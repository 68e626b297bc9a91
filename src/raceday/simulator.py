"""
Play out a tournament with rating-weighted random results.
"""
import logging
import random
from typing import Dict, Optional

from .commands import ReportMatchResultRequest

logger = logging.getLogger(__name__)

RATING_EXPONENT = 2.5


def simulate_match_winner(user_a: str, user_b: str, ratings: Dict[str, float],
                          rng: Optional[random.Random] = None) -> str:
    """
    Pick a winner.

    P(a wins) = ra^2.5 / (ra^2.5 + rb^2.5), so 1600 vs 600 is about 91.5%.
    A rated player always beats an unrated one; two unrated players flip a coin.
    """
    rng = rng or random.Random()
    rating_a = ratings.get(user_a)
    rating_b = ratings.get(user_b)

    if rating_a is None and rating_b is None:
        return user_a if rng.random() < 0.5 else user_b
    if rating_b is None:
        return user_a
    if rating_a is None:
        return user_b

    power_a = max(rating_a, 0) ** RATING_EXPONENT
    power_b = max(rating_b, 0) ** RATING_EXPONENT
    if power_a + power_b == 0:
        return user_a if rng.random() < 0.5 else user_b
    return user_a if rng.random() < power_a / (power_a + power_b) else user_b


def simulate_tournament(manager, tournament_id, ratings: Dict[str, float],
                        rng: Optional[random.Random] = None) -> Optional[str]:
    """
    Report results for every playable match until nothing is left to play.

    Returns the champion, or None if the bracket is stuck on pending slots.
    """
    rng = rng or random.Random()
    store = manager.store
    played = 0
    while True:
        playable = [
            m for m in store.get_tournament_matches(tournament_id)
            if m.status == 'planned' and m.user_a and m.user_b
        ]
        if not playable:
            break
        for match in playable:
            winner = simulate_match_winner(match.user_a, match.user_b, ratings, rng)
            manager.report_match_result(ReportMatchResultRequest(match.id, winner))
            played += 1

    champion = manager.get_tournament(tournament_id)['champion']
    logger.info("Simulated %d matches for tournament %s, champion: %s", played, tournament_id, champion)
    return champion
