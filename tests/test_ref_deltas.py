import pytest

from tracepoints.errors import CallTreeShapeError, DeltasAlreadyComputedError, DeltasNotComputedError
from tracepoints.ref_deltas import DeltaState, RefDeltaCalculator, is_addref_or_release_node, select_roots


def compute(registry, tree):
    calculator = RefDeltaCalculator(registry)
    calculator.compute(tree.roots)
    return calculator


def test_balanced_addref_and_release_net_zero(registry, make_tree):
    tree = make_tree(("AddRef", "Foo", "Bar"), ("Release", "Foo", "Bar"))
    deltas = compute(registry, tree)
    assert deltas.delta_by_name("Foo") == 0
    assert deltas.delta_by_name("Bar") == 0
    assert deltas.delta_by_name("AddRef") == 1
    assert deltas.delta_by_name("Release") == -1


def test_extra_addref_shows_up_as_positive_delta(registry, make_tree):
    tree = make_tree(("AddRef", "Foo"), ("AddRef", "Foo"), ("Release", "Foo"))
    deltas = compute(registry, tree)
    assert deltas.delta_by_name("Foo") == 1
    assert deltas.total_delta() == 1


def test_weighted_by_hit_count_across_call_sites(registry, make_tree):
    tree = make_tree(
        ("AddRef", "Helper", "A"),
        ("AddRef", "Helper", "A"),
        ("AddRef", "B", "Helper"),
        ("Release", "Helper", "A"),
    )
    deltas = compute(registry, tree)
    # Helper appears under AddRef at two call sites (2 + 1) and once under Release
    assert deltas.delta_by_name("Helper") == 2
    assert deltas.delta_by_name("A") == 1
    assert deltas.delta_by_name("B") == 1


def test_subtree_contributions_are_conservative(registry, make_tree):
    tree = make_tree(
        ("AddRef", "A", "B"),
        ("AddRef", "A", "C"),
        ("AddRef", "D"),
        ("Release", "E", "F"),
    )
    deltas = compute(registry, tree)
    addref_sum = sum(node.hit_count for node, _ in tree.root("AddRef").walk())
    release_sum = sum(node.hit_count for node, _ in tree.root("Release").walk())
    assert sum(delta for _, delta in deltas.items()) == addref_sum - release_sum


def test_roots_are_order_independent(registry, make_tree):
    tree = make_tree(("Release", "Foo"), ("AddRef", "Foo"), ("AddRef", "Foo"))
    assert tree.roots[0].function.name == "Release"
    deltas = compute(registry, tree)
    assert deltas.addref_root.function.name == "AddRef"
    assert deltas.delta_by_name("Foo") == 1


def test_release_called_from_release_is_not_counted_twice(registry, make_tree):
    tree = make_tree(
        ("AddRef", "Foo"),
        ("Release", "Release", "Foo"),
    )
    deltas = compute(registry, tree)
    assert deltas.delta_by_name("Release") == -1
    assert deltas.delta_by_name("Foo") == 0


def test_recursion_of_non_root_function_is_counted_at_every_level(registry, make_tree):
    # Only the root functions are protected from double counting
    tree = make_tree(("AddRef", "Foo", "Foo"), ("Release", "Bar"))
    deltas = compute(registry, tree)
    assert deltas.delta_by_name("Foo") == 2


def test_interlocked_wrapper_roots_are_classified_through_their_child(registry, make_tree):
    tree = make_tree(
        ("InterlockedIncrement", "CFoo::AddRef", "Caller"),
        ("InterlockedDecrement", "CFoo::Release", "Caller"),
    )
    addref_root, release_root = select_roots(tree.roots)
    assert addref_root.function.name == "InterlockedIncrement"
    assert release_root.function.name == "InterlockedDecrement"
    deltas = compute(registry, tree)
    assert deltas.delta_by_name("Caller") == 0
    assert deltas.delta_by_name("CFoo::AddRef") == 1


def test_interlocked_with_several_children_is_not_skipped(make_tree):
    tree = make_tree(("InterlockedIncrement", "X::AddRef"), ("InterlockedIncrement", "Y::AddRef"))
    assert not is_addref_or_release_node(tree.root("InterlockedIncrement"), "AddRef")


def test_compute_twice_raises_and_keeps_deltas(registry, make_tree):
    tree = make_tree(("AddRef", "Foo"), ("AddRef", "Foo"), ("Release", "Foo"))
    calculator = RefDeltaCalculator(registry)
    calculator.compute(tree.roots)
    with pytest.raises(DeltasAlreadyComputedError):
        calculator.compute(tree.roots)
    assert calculator.delta_by_name("Foo") == 1
    assert calculator.state is DeltaState.COMPUTED


def test_three_roots_raise_shape_error_without_deltas(registry, make_tree):
    tree = make_tree(("AddRef", "Foo"), ("Release", "Foo"), ("Other", "Foo"))
    calculator = RefDeltaCalculator(registry)
    with pytest.raises(CallTreeShapeError, match="one AddRef root and one Release root"):
        calculator.compute(tree.roots)
    assert calculator.state is DeltaState.NOT_STARTED
    with pytest.raises(DeltasNotComputedError):
        calculator.delta_by_name("Foo")


def test_two_addref_roots_raise_shape_error(registry, make_tree):
    tree = make_tree(("A::AddRef", "Foo"), ("B::AddRef", "Foo"))
    with pytest.raises(CallTreeShapeError):
        RefDeltaCalculator(registry).compute(tree.roots)


def test_shape_error_leaves_calculator_usable(registry, make_tree):
    bad = make_tree(("AddRef", "Foo"))
    calculator = RefDeltaCalculator(registry)
    with pytest.raises(CallTreeShapeError):
        calculator.compute(bad.roots)
    good = make_tree(("AddRef", "Foo"), ("Release", "Foo"))
    calculator.compute(good.roots)
    assert calculator.delta_by_name("Foo") == 0


def test_queries_before_compute_raise(registry, make_tree):
    make_tree(("AddRef", "Foo"), ("Release", "Foo"))
    calculator = RefDeltaCalculator(registry)
    with pytest.raises(DeltasNotComputedError):
        calculator.functions_with_delta(0)
    with pytest.raises(DeltasNotComputedError):
        calculator.total_delta()


def test_functions_with_delta(registry, make_tree):
    tree = make_tree(
        ("AddRef", "Leaky", "Main"),
        ("AddRef", "Leaky", "Main"),
        ("Release", "Balanced", "Main"),
        ("AddRef", "Balanced", "Main"),
    )
    deltas = compute(registry, tree)
    assert [f.name for f in deltas.functions_with_delta(2)] == ["Leaky", "Main"]
    assert [f.name for f in deltas.functions_with_delta(0)] == ["Balanced"]
    assert deltas.delta_by_name("Main") == 2
