def test_shared_prefixes_merge(make_tree):
    tree = make_tree(
        ("AddRef", "Foo", "Bar"),
        ("AddRef", "Foo", "Baz"),
        ("AddRef", "Foo", "Bar"),
        ("Release", "Foo", "Bar"),
    )
    assert len(tree) == 2
    addref = tree.root("AddRef")
    assert addref.hit_count == 3
    foo = addref.child("Foo")
    assert foo.hit_count == 3
    assert foo.child("Bar").hit_count == 2
    assert foo.child("Baz").hit_count == 1
    assert tree.find("Release", "Foo", "Bar").hit_count == 1
    assert tree.find("Release", "Foo", "Baz") is None


def test_root_hit_counts_sum_to_stack_count(make_tree):
    stacks = [("AddRef", "A"), ("AddRef", "B"), ("Release", "A"), ("AddRef", "A", "C")]
    tree = make_tree(*stacks)
    assert sum(root.hit_count for root in tree.roots) == len(stacks)
    assert tree.root("AddRef").hit_count == 3
    assert tree.root("Release").hit_count == 1


def test_children_sorted_by_descending_hit_count(make_tree):
    tree = make_tree(("R", "Low"), ("R", "High"), ("R", "High"), ("R", "Mid"), ("R", "High"), ("R", "Mid"))
    names = [node.function.name for node in tree.root("R").sorted_children()]
    assert names == ["High", "Mid", "Low"]


def test_walk_is_depth_first(make_tree):
    tree = make_tree(("R", "A", "B"), ("R", "A", "B"), ("R", "C"))
    walked = [(node.function.name, depth) for node, depth in tree.walk()]
    assert walked == [("R", 0), ("A", 1), ("B", 2), ("C", 1)]


def test_subtree_hit_count(make_tree):
    tree = make_tree(("R", "A", "B"), ("R", "C"))
    assert tree.root("R").subtree_hit_count() == 2 + 1 + 1 + 1


def test_self_recursive_function_gets_its_own_node(make_tree):
    tree = make_tree(("Release", "Release", "Foo"))
    root = tree.root("Release")
    nested = root.child("Release")
    assert nested is not root
    assert nested.function is root.function
