"""Tests for the FDR-controlled fast adjacency search."""

import itertools
import threading

import networkx as nx
import pandas as pd
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from causal_search.core.base import ConfigurationError, SearchDataValidationError
from causal_search.core.knowledge import Knowledge
from causal_search.discovery.fas import (
    FASAlgorithm,
    FasResult,
    FastAdjacencySearch,
    fast_adjacency_search,
)
from shared.observability.metrics import get_metrics


def sepset_names(result, x, y):
    by_name = {node.name: node for node in result.graph.nodes}
    sepset = result.sepsets.get(by_name[x], by_name[y])
    return None if sepset is None else [z.name for z in sepset]


def pair_p_values(**values):
    """Build a p-value function from keyword pairs such as AB=0.5."""
    table = {frozenset(pair): p for pair, p in values.items()}

    def p_value(x, y, z):
        return table[frozenset((x, y))]

    return p_value


class TestTrivialOracles:
    """Searches whose outcome is fixed by a constant oracle."""

    def test_always_independent_removes_everything(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 1.0)
        result = FastAdjacencySearch(test).search()

        assert isinstance(result, FasResult)
        assert result.n_edges == 0
        assert result.n_variables == 5
        assert len(result.sepsets) == 10
        for x, y in itertools.combinations(five_names, 2):
            assert sepset_names(result, x, y) == []
        assert result.cutoff_history == [0.0]
        assert result.max_depth_reached == 0
        assert result.n_independence_tests == 10

    def test_always_dependent_keeps_complete_graph(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 0.0)
        result = FastAdjacencySearch(test).search()

        assert result.n_edges == 10
        assert len(result.sepsets) == 0
        # Free degree of K5 is 3, so depth 3 is the last one visited
        assert result.max_depth_reached == 3
        assert max(len(z) for _, _, z in test.calls) == 3
        assert result.cutoff_history == [0.0]

    def test_depth_bound(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 0.0)
        result = FastAdjacencySearch(test, depth=1).search()

        assert result.max_depth_reached == 1
        assert all(len(z) <= 1 for _, _, z in test.calls)

    def test_depth_zero_only_marginal_tests(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 0.0)
        result = FastAdjacencySearch(test, depth=0).search()

        assert result.max_depth_reached == 0
        assert len(test.calls) == 10
        assert all(z == () for _, _, z in test.calls)

    @pytest.mark.parametrize("depth", [-2, -10])
    def test_invalid_depth(self, scripted_test, five_names, depth):
        test = scripted_test(five_names, lambda x, y, z: 0.0)
        with pytest.raises(ConfigurationError):
            FastAdjacencySearch(test, depth=depth)

    def test_p_max_covers_every_tested_pair(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 0.0)
        result = FastAdjacencySearch(test).search()

        assert set(result.p_max) == set(itertools.combinations(five_names, 2))
        assert all(0.0 <= p <= 1.0 for p in result.p_max.values())


class TestRemovalAtDepth:
    """Removals triggered by conditional tests."""

    @pytest.fixture
    def separable_test(self, scripted_test):
        """A _||_ B | C; every other pair stays dependent.

        A - B has the largest marginal p-value, so raising it lowers the cutoff.
        """
        base = pair_p_values(
            AB=6e-6, AC=1e-6, AD=2e-6, BC=3e-6, BD=4e-6, CD=5e-6
        )

        def p_value(x, y, z):
            if {x, y} == {"A", "B"} and "C" in z:
                return 0.9
            return base(x, y, z)

        return scripted_test(["A", "B", "C", "D"], p_value)

    def test_pair_removed_with_conditioning_set(self, separable_test):
        result = FastAdjacencySearch(separable_test).search()

        assert frozenset(("A", "B")) not in result.adjacencies
        assert len(result.adjacencies) == 5
        assert sepset_names(result, "A", "B") == ["C"]
        assert result.cutoff_history == [6e-6, 5e-6]
        assert result.p_max[("A", "B")] == 0.9
        assert result.max_depth_reached == 2

    def test_sepset_size_matches_depth(self, separable_test):
        result = FastAdjacencySearch(separable_test).search()
        for (x, y), sepset in result.sepsets.items():
            assert len(sepset) == 1

    def test_depth_zero_cannot_separate(self, separable_test):
        result = FastAdjacencySearch(separable_test, depth=0).search()
        assert result.n_edges == 6
        assert len(result.sepsets) == 0

    def test_conditioning_sets_come_from_start_of_depth(self, separable_test):
        """Tests at depth 1 still condition on B's neighbour A after A - B is gone."""
        FastAdjacencySearch(separable_test, depth=1).search()
        assert ("B", "C", ("A",)) in separable_test.calls

    def test_removed_pair_not_tested_at_next_depth(self, separable_test):
        FastAdjacencySearch(separable_test).search()
        depth2_pairs = {
            frozenset((x, y)) for x, y, z in separable_test.calls if len(z) == 2
        }
        assert frozenset(("A", "B")) not in depth2_pairs


class TestInvariants:
    """Properties that hold for any oracle."""

    @settings(
        max_examples=60,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(data=st.data())
    def test_removal_invariants(self, scripted_test, data):
        names = ["A", "B", "C", "D", "E"][: data.draw(st.integers(2, 5))]
        pairs = [frozenset(p) for p in itertools.combinations(names, 2)]
        independent = set(data.draw(st.lists(st.sampled_from(pairs), unique=True)))
        marginal = {
            pair: data.draw(st.floats(0.0, 1.0, allow_nan=False)) for pair in pairs
        }

        def p_value(x, y, z):
            pair = frozenset((x, y))
            if pair in independent and z:
                return 1.0
            return marginal[pair]

        test = scripted_test(names, p_value)
        result = FastAdjacencySearch(test).search()

        history = result.cutoff_history
        assert all(later < earlier for earlier, later in zip(history, history[1:]))

        for x, y in itertools.combinations(names, 2):
            pair = frozenset((x, y))
            removed = pair not in result.adjacencies
            assert removed == (sepset_names(result, x, y) is not None)
            if removed:
                assert result.p_max[(x, y)] > result.final_cutoff
                assert len(sepset_names(result, x, y)) <= result.max_depth_reached

        graph_pairs = {frozenset((str(u), str(v))) for u, v in result.graph.edges()}
        assert graph_pairs == result.adjacencies


class TestRerun:
    """Feeding a search result back in as the candidate graph."""

    @pytest.fixture
    def rising_pair_test(self, scripted_test):
        """C - D rises to 0.5 after the cutoff has already dropped to 0.001."""
        marginal = {
            frozenset("AB"): 0.002,
            frozenset("AC"): 0.0005,
            frozenset("AD"): 0.003,
            frozenset("BC"): 0.004,
            frozenset("BD"): 0.005,
            frozenset("CD"): 0.001,
        }
        conditional = {
            (frozenset("AC"), frozenset("B")): 0.001,
            (frozenset("AB"), frozenset("C")): 0.9,
            (frozenset("AD"), frozenset("B")): 0.9,
            (frozenset("BC"), frozenset("A")): 0.9,
            (frozenset("BD"), frozenset("A")): 0.9,
            (frozenset("CD"), frozenset("A")): 0.5,
        }

        def p_value(x, y, z):
            pair = frozenset((x, y))
            if not z:
                return marginal[pair]
            return conditional.get((pair, frozenset(z)), 0.0)

        return lambda: scripted_test(["A", "B", "C", "D"], p_value)

    def test_unchanged_cutoff_keeps_risen_pair(self, rising_pair_test):
        first = FastAdjacencySearch(rising_pair_test()).search()

        assert first.adjacencies == {frozenset("AC"), frozenset("CD")}
        assert first.cutoff_history == [0.005, 0.001]
        assert first.p_max[("C", "D")] == 0.5
        assert first.p_max[("C", "D")] > first.final_cutoff

    def test_rerun_removes_risen_pair(self, rising_pair_test):
        """The smaller candidate set lets the rerun adopt a lower cutoff."""
        first = FastAdjacencySearch(rising_pair_test()).search()

        second = FastAdjacencySearch(
            rising_pair_test(), initial_graph=first.graph
        ).search()

        assert second.adjacencies == {frozenset("AC")}
        assert sepset_names(second, "C", "D") == ["A"]
        assert second.cutoff_history == [0.001, 0.0005]

    @settings(
        max_examples=60,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(data=st.data())
    def test_rerun_never_adds_adjacencies(self, scripted_test, data):
        names = ["A", "B", "C", "D", "E"][: data.draw(st.integers(2, 5))]
        pairs = [frozenset(p) for p in itertools.combinations(names, 2)]
        p_values = {
            (pair, size): data.draw(st.floats(0.0, 1.0, allow_nan=False))
            for pair in pairs
            for size in range(len(names) - 1)
        }

        def p_value(x, y, z):
            return p_values[(frozenset((x, y)), len(z))]

        first = FastAdjacencySearch(scripted_test(names, p_value)).search()
        second = FastAdjacencySearch(
            scripted_test(names, p_value), initial_graph=first.graph
        ).search()

        assert second.adjacencies <= first.adjacencies
        assert {frozenset(pair) for pair in second.p_max} <= first.adjacencies
        for pair in first.adjacencies - second.adjacencies:
            x, y = sorted(pair)
            assert sepset_names(second, x, y) is not None


class TestInitialGraph:
    """Restricting the candidate adjacencies."""

    def test_only_candidate_pairs_are_tested(self, scripted_test):
        names = ["A", "B", "C", "D"]
        test = scripted_test(names, lambda x, y, z: 0.0)
        initial = nx.Graph([("A", "B"), ("B", "C"), ("C", "D")])

        result = FastAdjacencySearch(test, initial_graph=initial).search()

        assert result.adjacencies == {
            frozenset(p) for p in [("A", "B"), ("B", "C"), ("C", "D")]
        }
        assert set(result.p_max) == {("A", "B"), ("B", "C"), ("C", "D")}
        tested = {frozenset((x, y)) for x, y, _ in test.calls}
        assert frozenset(("A", "C")) not in tested
        assert frozenset(("A", "D")) not in tested

    def test_excluded_pairs_have_no_sepset(self, scripted_test):
        names = ["A", "B", "C"]
        test = scripted_test(names, lambda x, y, z: 1.0)
        initial = nx.Graph([("A", "B")])
        initial.add_node("C")

        result = FastAdjacencySearch(test, initial_graph=initial).search()

        assert result.n_edges == 0
        assert sepset_names(result, "A", "B") == []
        assert sepset_names(result, "A", "C") is None


class TestKnowledgeFilter:
    """Background knowledge limits the conditioning variables."""

    def test_forbidden_parent_never_conditions(self, scripted_test):
        names = ["A", "B", "C", "D"]
        test = scripted_test(names, lambda x, y, z: 0.0)
        knowledge = Knowledge()
        knowledge.set_forbidden("C", "A")

        FastAdjacencySearch(test, knowledge=knowledge, depth=2).search()

        assert not any(x == "A" and "C" in z for x, _, z in test.calls)
        assert any(x == "B" and "C" in z for x, _, z in test.calls)

    def test_required_child_never_conditions(self, scripted_test):
        names = ["A", "B", "C"]
        test = scripted_test(names, lambda x, y, z: 0.0)
        knowledge = Knowledge()
        knowledge.set_required("A", "C")

        FastAdjacencySearch(test, knowledge=knowledge).search()

        assert ("A", "B", ("C",)) not in test.calls
        assert ("C", "B", ("A",)) in test.calls


class TestTestFailures:
    """Failing tests count as dependence."""

    def test_raising_test_keeps_edge(self, scripted_test, five_names):
        def p_value(x, y, z):
            if {x, y} == {"A", "B"}:
                raise RuntimeError("numerical trouble")
            return 1.0

        test = scripted_test(five_names, p_value)
        result = FastAdjacencySearch(test).search()

        assert result.adjacencies == {frozenset(("A", "B"))}
        assert result.p_max[("A", "B")] == 0.0
        assert result.n_test_failures >= 1

    @pytest.mark.parametrize("bad_value", [float("nan"), -0.5, 1.5])
    def test_malformed_p_value_counts_as_dependent(self, scripted_test, bad_value):
        def p_value(x, y, z):
            return bad_value if {x, y} == {"A", "B"} else 1.0

        test = scripted_test(["A", "B", "C"], p_value)
        result = FastAdjacencySearch(test).search()

        assert result.adjacencies == {frozenset(("A", "B"))}
        assert result.n_test_failures == 1

    def test_failures_are_counted_in_metrics(self, scripted_test):
        metrics = get_metrics()
        before = metrics.registry.get_sample_value(
            "causal_search_independence_tests_total", {"outcome": "failed"}
        ) or 0.0

        def p_value(x, y, z):
            raise RuntimeError("boom")

        fast_adjacency_search(scripted_test(["A", "B"], p_value))

        after = metrics.registry.get_sample_value(
            "causal_search_independence_tests_total", {"outcome": "failed"}
        )
        assert after == before + 1


class TestCancellation:
    """Cooperative cancellation returns a partial result."""

    def test_cancel_before_start(self, scripted_test, five_names):
        test = scripted_test(five_names, lambda x, y, z: 1.0)
        cancel = threading.Event()
        cancel.set()

        result = FastAdjacencySearch(test).search(cancel_event=cancel)

        assert result.cancelled
        assert test.calls == []
        assert result.n_edges == 10
        assert result.max_depth_reached == -1

    def test_cancel_during_depth_zero(self, scripted_test, five_names):
        cancel = threading.Event()

        def p_value(x, y, z):
            if len(test.calls) == 3:
                cancel.set()
            return 0.0

        test = scripted_test(five_names, p_value)
        result = FastAdjacencySearch(test).search(cancel_event=cancel)

        # The first node's pairs finish; the next node sees the request
        assert result.cancelled
        assert result.n_independence_tests == 4
        assert result.max_depth_reached == 0
        assert result.cutoff_history == []


class TestFASAlgorithm:
    """Test the DataFrame-level adjacency search."""

    def test_initialization(self):
        fas = FASAlgorithm(independence_test="pearson", alpha=0.01, depth=2)
        assert fas.parameters == {
            "independence_test": "pearson",
            "alpha": 0.01,
            "depth": 2,
        }
        assert not fas.is_fitted
        assert fas.result is None

    @pytest.mark.parametrize("alpha", [0.0, 1.0, 2.0])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ConfigurationError):
            FASAlgorithm(alpha=alpha)

    def test_fork_skeleton(self, fork_data):
        fas = FASAlgorithm(alpha=0.05)
        result = fas.search(fork_data)

        assert result.adjacencies == {frozenset(("X", "Y")), frozenset(("Y", "Z"))}
        assert sepset_names(result, "X", "Z") == ["Y"]
        assert fas.is_fitted
        assert fas.result is result
        assert result.algorithm_parameters["independence_test"] == "fisher_z"
        assert result.summary_stats["n_edges"] == 2

    def test_spearman_on_fork(self, fork_data):
        result = FASAlgorithm(independence_test="spearman").search(fork_data)
        assert frozenset(("X", "Y")) in result.adjacencies
        assert frozenset(("Y", "Z")) in result.adjacencies

    def test_unknown_test_name(self, fork_data):
        with pytest.raises(ConfigurationError):
            FASAlgorithm(independence_test="g_square").search(fork_data)

    def test_cancel_flag_cleared_after_search(self, fork_data):
        fas = FASAlgorithm()
        fas.cancel()
        first = fas.search(fork_data)
        second = fas.search(fork_data)

        assert first.cancelled
        assert not second.cancelled
        assert second.n_edges == 2

    def test_data_validation(self):
        fas = FASAlgorithm()

        with pytest.raises(SearchDataValidationError):
            fas.search([[1, 2], [3, 4]])

        with pytest.raises(SearchDataValidationError):
            fas.search(pd.DataFrame())

        with pytest.raises(SearchDataValidationError, match="at least 2 variables"):
            fas.search(pd.DataFrame({"X": range(50)}))

        with pytest.raises(SearchDataValidationError, match="at least 10"):
            fas.search(pd.DataFrame({"X": range(5), "Y": range(5)}))

        with pytest.raises(SearchDataValidationError, match="Constant"):
            fas.search(pd.DataFrame({"X": [1.0] * 50, "Y": range(50)}))

        with pytest.raises(SearchDataValidationError, match="Non-numeric"):
            fas.search(pd.DataFrame({"X": range(50), "Y": ["low", "high"] * 25}))

        frame = pd.DataFrame({"X": range(50), "Y": range(50)}, dtype=float)
        frame.loc[3, "Y"] = float("nan")
        with pytest.raises(SearchDataValidationError, match="Missing"):
            fas.search(frame)

    def test_small_sample_warning(self, fork_data):
        with pytest.warns(UserWarning, match="Recommend"):
            FASAlgorithm().search(fork_data.head(20))
