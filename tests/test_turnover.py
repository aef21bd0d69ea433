# SPDX-License-Identifier: AGPL-3.0-or-later
import pytest

from nullturnover import InsufficientPoolError, InvariantViolation
from nullturnover.cover import Occurrence, expected_broken_stick
from nullturnover.pool import Species, SpeciesPool
from nullturnover.turnover import (
    change_count,
    decreaser_count,
    draw_colonizers,
    geometric_schedule,
    rebalance,
    simulate_turnover,
    turnover_community,
)

SEED = 5


def make_community(cid, covers, first_id=1):
    return tuple(
        Occurrence(community_id=cid, species_id=first_id + i, cover=float(c), time=1)
        for i, c in enumerate(covers)
    )


@pytest.fixture
def pool():
    return SpeciesPool(Species(i, i % 5 + 1) for i in range(1, 61))


@pytest.fixture
def community():
    return make_community(7, expected_broken_stick(12))


def cover_of(occurrences):
    return {occ.species_id: occ.cover for occ in occurrences}


class TestCounts:
    @pytest.mark.parametrize(
        "richness, p_change, expected",
        [(10, 0.4, 4), (12, 0.4, 4), (20, 0.4, 8), (1, 0.4, 1), (2, 0.4, 1), (3, 1.0, 3), (5, 0.0, 1)],
    )
    def test_change_count(self, richness, p_change, expected):
        """Even count, at least one, at most the richness."""
        assert change_count(richness, p_change) == expected

    @pytest.mark.parametrize(
        "n_change, p_increase, use_ceiling, expected",
        [
            (4, 0.5, True, 2),
            (4, 0.5, False, 2),
            (3, 0.5, True, 2),
            (3, 0.5, False, 1),
            (5, 0.4, True, 3),
            (5, 0.4, False, 3),
            (1, 0.5, False, 1),
            (2, 1.0, True, 1),
        ],
    )
    def test_decreaser_count(self, n_change, p_increase, use_ceiling, expected):
        """Ceiling or floor of the decreasing share, never below one."""
        assert decreaser_count(n_change, p_increase, use_ceiling) == expected

    @pytest.mark.parametrize(
        "n, expected",
        [(1, [1.0]), (2, [0.5, 0.5]), (4, [0.5, 0.25, 0.125, 0.125])],
    )
    def test_geometric_schedule(self, n, expected):
        """Halving shares with the last two ranks equal."""
        assert geometric_schedule(n) == expected
        assert sum(geometric_schedule(n)) == pytest.approx(1.0)


class TestRebalance:
    def test_merge_down(self):
        """Merging keeps the total while reducing the count."""
        merged = rebalance([0.1, 0.2, 0.3, 0.4], 2, 7, SEED)
        assert len(merged) == 2
        assert sum(merged) == pytest.approx(1.0)

    def test_split_up(self):
        """Splitting halves increments until the count is reached."""
        split = rebalance([0.5, 0.2], 5, 7, SEED)
        assert len(split) == 5
        assert sum(split) == pytest.approx(0.7)

    def test_single_recipient_collapses(self):
        assert rebalance([0.1, 0.2, 0.3], 1, 7, SEED) == [pytest.approx(0.6)]

    def test_matching_count_untouched(self):
        assert rebalance([0.1, 0.2], 2, 7, SEED) == [0.1, 0.2]

    def test_reproducible(self):
        """Each step reseeds from the community and step index."""
        values = [0.05, 0.1, 0.2, 0.3, 0.35]
        assert rebalance(values, 2, 7, SEED) == rebalance(values, 2, 7, SEED)


class TestDrawColonizers:
    def test_excludes_residents(self, pool):
        """Colonizers are distinct species absent from the community."""
        present = {1, 2, 3, 4, 5}
        picked = draw_colonizers(pool, present, 6, 7, SEED)
        assert len(set(picked)) == 6
        assert not set(picked) & present

    def test_none_needed(self, pool):
        assert draw_colonizers(pool, {1}, 0, 7, SEED) == []

    def test_insufficient_pool(self):
        """Asking for more colonizers than eligible species aborts."""
        small = SpeciesPool([Species(1, 1), Species(2, 1), Species(3, 1)])
        with pytest.raises(InsufficientPoolError) as excinfo:
            draw_colonizers(small, {1, 2}, 2, 9, SEED)
        assert excinfo.value.community_id == 9
        assert excinfo.value.available == 1


class TestTurnoverCommunity:
    def test_conservation(self, community, pool):
        """Richness and total cover survive turnover."""
        result = turnover_community(community, pool, 0.4, 0.5, False, SEED)
        assert len(result.occurrences) == 12
        assert sum(occ.cover for occ in result.occurrences) == pytest.approx(1.0, abs=1e-9)
        assert {occ.time for occ in result.occurrences} == {2}

    def test_roles_are_consistent(self, community, pool):
        """Extinct species left, colonizers arrived, gainers came from the increasers."""
        result = turnover_community(community, pool, 0.4, 0.5, False, SEED)
        residents = set(cover_of(community))
        after = set(cover_of(result.occurrences))
        assert not set(result.decreasers) & set(result.increasers)
        assert set(result.extinct) <= set(result.decreasers)
        assert len(result.extinct) >= 1
        assert len(result.colonizers) == len(result.extinct)
        assert not set(result.colonizers) & residents
        assert set(result.resident_gainers) <= set(result.increasers)
        assert after == (residents - set(result.extinct)) | set(result.colonizers)

    def test_cover_moves_in_the_right_direction(self, community, pool):
        """Decreasers lose cover, gainers gain it, the rest stay put."""
        before = cover_of(community)
        result = turnover_community(community, pool, 0.4, 0.5, False, SEED)
        after = cover_of(result.occurrences)
        for sid in result.decreasers:
            assert after.get(sid, 0.0) < before[sid]
        for sid in result.resident_gainers:
            assert after[sid] > before[sid]
        untouched = set(before) - set(result.decreasers) - set(result.resident_gainers)
        for sid in untouched:
            assert after[sid] == before[sid]
        assert sum(before[s] - after.get(s, 0.0) for s in result.decreasers) == pytest.approx(
            result.freed_cover
        )

    def test_decreasers_ranked_by_cover(self, community, pool):
        """Decreasers are recorded largest cover first."""
        before = cover_of(community)
        result = turnover_community(community, pool, 0.8, 0.3, False, SEED)
        covers = [before[s] for s in result.decreasers]
        assert covers == sorted(covers, reverse=True)

    def test_weighted_decline_takes_highest_ids(self, community, pool):
        """With weighted decline the top ids decrease and the next ones increase."""
        result = turnover_community(community, pool, 0.4, 0.5, True, SEED)
        assert result.n_change == 4
        assert set(result.decreasers) == {11, 12}
        assert set(result.increasers) == {9, 10}

    def test_single_species_community(self, pool):
        """A lone species is replaced by one colonizer holding all cover."""
        result = turnover_community(make_community(3, [1.0]), pool, 0.4, 0.5, False, SEED)
        assert result.extinct == (1,)
        assert len(result.occurrences) == 1
        assert result.occurrences[0].species_id != 1
        assert result.occurrences[0].cover == pytest.approx(1.0)

    def test_no_increasers(self, community, pool):
        """With nobody increasing, all freed cover goes to colonizers."""
        result = turnover_community(community, pool, 1.0, 0.0, False, SEED)
        assert result.increasers == ()
        assert result.resident_gainers == ()
        colonized = cover_of(result.occurrences)
        assert sum(colonized[s] for s in result.colonizers) == pytest.approx(result.freed_cover)
        assert sum(occ.cover for occ in result.occurrences) == pytest.approx(1.0, abs=1e-9)

    def test_all_increase_forces_one_decreaser(self, community, pool):
        """p_increase = 1 still makes exactly one species decrease."""
        result = turnover_community(community, pool, 0.4, 1.0, False, SEED)
        assert len(result.decreasers) == 1
        assert len(result.increasers) == result.n_change - 1
        assert sum(occ.cover for occ in result.occurrences) == pytest.approx(1.0, abs=1e-9)

    def test_pool_exhausted(self):
        """A community holding the whole pool has no colonizer to draw."""
        pool = SpeciesPool(Species(i, 1) for i in range(1, 5))
        community = make_community(4, expected_broken_stick(4))
        with pytest.raises(InsufficientPoolError, match="community 4"):
            turnover_community(community, pool, 0.5, 0.5, False, SEED)

    def test_near_zero_remainder_goes_extinct(self, pool):
        """A decreaser left with float residue is treated as extinct, not kept at ~0."""
        community = make_community(2, [0.5 + 5e-13, 0.5 - 5e-13])
        result = turnover_community(community, pool, 1.0, 0.0, True, SEED)
        assert set(result.decreasers) == {1, 2}
        assert set(result.extinct) == {1, 2}
        assert len(result.colonizers) == 2
        assert all(occ.cover > 1e-9 for occ in result.occurrences)
        assert sum(occ.cover for occ in result.occurrences) == pytest.approx(1.0, abs=1e-9)

    def test_unnormalised_cover_is_rejected(self, pool):
        """A community whose cover does not sum to 1 fails the time-2 check."""
        with pytest.raises(InvariantViolation, match="cover sums to") as excinfo:
            turnover_community(make_community(6, [0.5, 0.3]), pool, 0.4, 0.5, False, SEED)
        assert excinfo.value.community_id == 6


class TestSimulateTurnover:
    @pytest.fixture
    def snapshot(self):
        return {
            1: make_community(1, expected_broken_stick(5)),
            2: (),
            3: make_community(3, expected_broken_stick(9), first_id=20),
            4: make_community(4, expected_broken_stick(15), first_id=30),
        }

    def test_empty_communities_skipped(self, snapshot, pool):
        run = simulate_turnover(snapshot, pool, 0.4, 0.5, False, SEED)
        assert 2 not in run.records
        assert run.snapshot()[2] == ()

    def test_isolated_community_matches_full_run(self, snapshot, pool):
        """A community's turnover does not depend on the others."""
        run = simulate_turnover(snapshot, pool, 0.4, 0.5, False, SEED)
        alone = turnover_community(snapshot[3], pool, 0.4, 0.5, False, SEED)
        assert run.records[3] == alone

    def test_totals(self, snapshot, pool):
        run = simulate_turnover(snapshot, pool, 0.4, 0.5, False, SEED)
        assert run.total_cover == pytest.approx(3.0)
        assert run.total_extinct == run.total_colonized
        assert run.total_decreasing == sum(len(r.decreasers) for r in run.records.values())
