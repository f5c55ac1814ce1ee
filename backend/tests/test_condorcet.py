import random

from decide.condorcet import filter_ballot, is_reachable, pairwise_totals, ranked_pairs
from helpers import Selection, ballots, parse_ballot


def test_is_reachable():
    assert is_reachable(0, 1, [{1}, set()])
    assert not is_reachable(1, 0, [{1}, set()])
    chain = [{1}, {2}, {3}, set()]
    assert is_reachable(0, 3, chain)
    assert not is_reachable(3, 0, chain)

    complicated_graph = [{4}, {6}, {6}, {4}, {5}, {1, 2}, {0}]
    for target in (1, 2, 4, 5, 6):
        assert is_reachable(0, target, complicated_graph)
    for target in (0, 1, 4, 5, 6):
        assert is_reachable(2, target, complicated_graph)
    assert not is_reachable(0, 3, complicated_graph)
    assert not is_reachable(2, 3, complicated_graph)
    for target in (0, 1, 2, 4, 5, 6):
        assert is_reachable(3, target, complicated_graph)


def test_filter_ballot_drops_out_of_range_and_repeats():
    raw = [Selection(2, 1), Selection(5, 1), Selection(0, 2), Selection(2, 3), Selection(3, 4)]
    assert filter_ballot(4, raw) == [Selection(2, 1), Selection(0, 2), Selection(3, 4)]


def test_filter_ballot_is_idempotent():
    rng = random.Random(7)
    for _ in range(50):
        raw = [Selection(rng.randrange(6), rng.randrange(4)) for _ in range(rng.randrange(10))]
        once = filter_ballot(4, raw)
        assert filter_ballot(4, once) == once


def test_ties_on_a_ballot_give_no_preference():
    totals = pairwise_totals(3, [parse_ballot("0=1>2")])
    assert totals[0][1] == 0 and totals[1][0] == 0
    assert totals[0][2] == 1
    assert totals[1][2] == 1


def test_unranked_candidates_are_not_compared():
    totals = pairwise_totals(3, [parse_ballot("1>0")])
    assert totals[1][0] == 1
    assert totals[0][2] == totals[2][0] == 0
    assert totals[1][2] == totals[2][1] == 0


def test_degenerate_inputs():
    empty = ranked_pairs(0, [])
    assert empty.totals == []
    assert empty.ranks == []

    no_candidates = ranked_pairs(0, [parse_ballot("0>1")])
    assert no_candidates.totals == []
    assert no_candidates.ranks == []

    no_ballots = ranked_pairs(3, [])
    assert no_ballots.totals == [[0, 0, 0]] * 3
    assert no_ballots.ranks == [[0, 1, 2]]


def test_even_split_is_a_tie():
    assert ranked_pairs(2, ballots((1, "0>1"), (1, "1>0"))).ranks[0] == [0, 1]
    assert ranked_pairs(2, ballots((50, "0>1"), (50, "1>0"))).ranks == [[0, 1]]


def test_ranked_pairs_reference_elections():
    five_way = ballots(
        (1, "4>1>3>2>0"),
        (1, "1>0>4>3>2"),
        (1, "3>0>4>1>2"),
        (1, "3>4>0>1>2"),
        (1, "2>1>3>0>4"),
    )
    assert ranked_pairs(5, five_way).ranks[0] == [1, 3, 4]

    ericgorr_example_1 = ballots((7, "0>1>2"), (5, "1>0>2"), (4, "2>0>1"), (2, "1>2>0"))
    result = ranked_pairs(3, ericgorr_example_1)
    assert result.ranks[0] == [0]
    assert result.totals == [[0, 11, 12], [7, 0, 14], [6, 4, 0]]

    ericgorr_example_2 = ballots((40, "0>1>2"), (35, "1>2>0"), (25, "2>0>1"))
    assert ranked_pairs(3, ericgorr_example_2).ranks == [[0], [1], [2]]

    ericgorr_example_3 = ballots((7, "0>1>2"), (7, "1>0>2"), (2, "2>0>1"), (2, "2>1>0"))
    assert ranked_pairs(3, ericgorr_example_3).ranks[0] == [0, 1]

    ericgorr_example_4 = ballots(
        (12, "0>3>2>1"),
        (3, "1>0>2>3"),
        (25, "1>2>0>3"),
        (21, "2>1>0>3"),
        (12, "3>0>1>2"),
        (21, "3>0>2>1"),
        (6, "3>1>0>2"),
    )
    assert ranked_pairs(4, ericgorr_example_4).ranks[0] == [1]

    ericgorr_interesting_2 = ballots((280, "0>2>3>1"), (301, "1>0>2>3"), (303, "2>1>3>0"), (356, "3>0>1>2"))
    assert ranked_pairs(4, ericgorr_interesting_2).ranks[0] == [0]


def test_tied_defeats_are_locked_as_a_group():
    # Three defeats of equal strength and margin form a cycle; checking them
    # one at a time would keep two of them, as a group all three are dropped.
    cycle = ballots((1, "0>1>2"), (1, "1>2>0"), (1, "2>0>1"))
    assert ranked_pairs(3, cycle).ranks == [[0, 1, 2]]


def test_result_ignores_ballot_and_entry_order():
    election = ballots(
        (12, "0>3>2>1"),
        (3, "1>0>2>3"),
        (25, "1>2>0>3"),
        (21, "2>1>0>3"),
        (12, "3>0>1>2"),
        (6, "3>1>0>2"),
        (4, "0=2>1"),
        (3, "3>1"),
    )
    expected = ranked_pairs(4, election)

    rng = random.Random(11)
    for _ in range(10):
        shuffled = [list(ballot) for ballot in election]
        for ballot in shuffled:
            rng.shuffle(ballot)
        rng.shuffle(shuffled)
        assert ranked_pairs(4, shuffled) == expected


def test_full_rankings_without_ties_give_single_winner():
    rng = random.Random(3)
    for _ in range(25):
        election = []
        for _ in range(rng.randrange(1, 9)):
            order = list(range(4))
            rng.shuffle(order)
            election.append([Selection(candidate, rank) for rank, candidate in enumerate(order)])
        result = ranked_pairs(4, election)
        assert sorted(c for tier in result.ranks for c in tier) == [0, 1, 2, 3]

        condorcet_winners = [
            a
            for a in range(4)
            if all(result.totals[a][b] > result.totals[b][a] for b in range(4) if b != a)
        ]
        if condorcet_winners:
            assert result.ranks[0] == condorcet_winners


def test_unanimous_full_ranking_is_a_total_order():
    result = ranked_pairs(4, ballots((3, "2>0>3>1")))
    assert result.ranks == [[2], [0], [3], [1]]
