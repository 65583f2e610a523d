"""Tests for panewatch.panes: the pane tree and its layout."""

import itertools

import pytest

from panewatch.arena import PaneKey
from panewatch.exceptions import InvalidTreeError
from panewatch.panes import Direction, Orientation, PaneManager, Rect, Single, Split

TOTAL = Rect(0, 0, 120, 40)


def _overlaps(a: Rect, b: Rect) -> bool:
    return (
        a.x < b.x + b.width
        and b.x < a.x + a.width
        and a.y < b.y + b.height
        and b.y < a.y + a.height
    )


def assert_tiles(manager: PaneManager, total: Rect = TOTAL) -> None:
    bounds = manager.bounds(total)
    assert set(bounds) == set(manager.leaves())
    assert sum(rect.area for rect in bounds.values()) == total.area
    for rect in bounds.values():
        assert rect.x >= total.x and rect.y >= total.y
        assert rect.x + rect.width <= total.x + total.width
        assert rect.y + rect.height <= total.y + total.height
    for a, b in itertools.combinations(bounds.values(), 2):
        if a.area and b.area:
            assert not _overlaps(a, b)


class TestFreshManager:
    """Tests for a newly created PaneManager."""

    def test_single_root_leaf(self):
        manager = PaneManager()
        root = manager.root()
        assert manager.leaves() == [root]
        assert manager.active == root
        assert manager.friendly_id(root) == 1
        assert manager.id_counter == 2
        manager.validate()

    def test_root_fills_total(self):
        manager = PaneManager()
        assert manager.bounds(TOTAL) == {manager.root(): TOTAL}


class TestSplit:
    """Tests for PaneManager.split()."""

    def test_split_root_vertically(self):
        manager = PaneManager()
        original = manager.active

        assert manager.split(Orientation.VERTICAL) is True

        root = manager.root()
        split = manager.nodes[root].data
        assert isinstance(split, Split)
        assert split.orientation is Orientation.VERTICAL
        assert split.children[0] == original
        new = split.children[1]
        assert manager.active == new
        assert isinstance(manager.nodes[new].data, Single)
        assert manager.friendly_id(new) == 2
        manager.validate()

    def test_split_inherits_weight_position(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.resize(Direction.RIGHT, 2)
        weighted = manager.active
        assert manager.nodes[weighted].weight == 3

        manager.split(Orientation.VERTICAL)

        parent_key = manager.nodes[manager.active].parent
        assert manager.nodes[parent_key].weight == 3
        assert manager.nodes[weighted].weight == 1
        manager.validate()

    def test_split_nested_replaces_child_in_place(self):
        manager = PaneManager()
        first = manager.active
        manager.split(Orientation.HORIZONTAL)
        second = manager.active
        manager.cycle()  # back to first
        assert manager.active == first

        manager.split(Orientation.VERTICAL)

        root_split = manager.nodes[manager.root()].data
        assert root_split.children[1] == second
        inner = manager.nodes[root_split.children[0]].data
        assert isinstance(inner, Split)
        assert inner.children == [first, manager.active]
        manager.validate()

    def test_friendly_ids_keep_counting(self):
        manager = PaneManager()
        for _ in range(3):
            manager.split(Orientation.HORIZONTAL)
        assert sorted(manager.friendly_ids.values()) == [1, 2, 3, 4]
        assert manager.id_counter == 5


class TestKill:
    """Tests for PaneManager.kill() / kill_active()."""

    def test_kill_new_pane_collapses_to_original_root(self):
        manager = PaneManager()
        original = manager.active
        manager.split(Orientation.VERTICAL)
        new = manager.active

        assert manager.kill_active() == new

        assert manager.root() == original
        assert manager.leaves() == [original]
        assert manager.active == original
        assert len(manager.nodes) == 1
        assert new not in manager.friendly_ids
        manager.validate()

    def test_kill_last_pane_is_noop(self):
        manager = PaneManager()
        assert manager.kill() is False
        assert manager.kill_active() is None
        assert len(manager.nodes) == 1

    def test_killed_key_is_stale(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        killed = manager.kill_active()
        manager.split(Orientation.HORIZONTAL)
        assert killed not in manager.nodes
        assert manager.is_leaf(killed) is False

    def test_active_becomes_last_leaf(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.HORIZONTAL)
        first, second, third = manager.leaves()
        manager.active = first

        manager.kill()

        assert manager.active == third
        assert manager.leaves() == [second, third]

    def test_survivor_inherits_split_weight(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.resize(Direction.RIGHT, 1)  # right pane weight 2
        manager.split(Orientation.VERTICAL)
        inner_split = manager.nodes[manager.active].parent
        assert manager.nodes[inner_split].weight == 2

        manager.kill()

        survivor = manager.leaves()[-1]
        assert manager.nodes[survivor].weight == 2
        assert manager.nodes[survivor].parent == manager.root()
        manager.validate()

    def test_kill_removes_leaf_and_its_collapsed_split(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.HORIZONTAL)
        before = len(manager.nodes)

        manager.kill()

        assert len(manager.nodes) == before - 2
        assert len(manager.leaves()) == 3
        manager.validate()


class TestCycle:
    """Tests for PaneManager.cycle()."""

    def test_cycle_visits_every_leaf_and_wraps(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.VERTICAL)
        leaves = manager.leaves()
        manager.active = leaves[0]

        seen = []
        for _ in range(len(leaves)):
            manager.cycle()
            seen.append(manager.active)

        assert seen == leaves[1:] + leaves[:1]

    def test_cycle_single_pane(self):
        manager = PaneManager()
        root = manager.active
        assert manager.cycle() is True
        assert manager.active == root


class TestResize:
    """Tests for PaneManager.resize()."""

    @pytest.mark.parametrize(
        "direction, axis",
        [
            (Direction.LEFT, Orientation.HORIZONTAL),
            (Direction.RIGHT, Orientation.HORIZONTAL),
            (Direction.UP, Orientation.VERTICAL),
            (Direction.DOWN, Orientation.VERTICAL),
        ],
    )
    def test_direction_axis_follows_screen_geometry(self, direction, axis):
        assert direction.axis is axis

    def test_resize_without_matching_ancestor_returns_false(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        before = manager.to_dict()

        assert manager.resize(Direction.UP, 1) is False
        assert manager.to_dict() == before

    def test_resize_root_returns_false(self):
        assert PaneManager().resize(Direction.LEFT, 1) is False

    def test_resize_moves_weight_between_siblings(self):
        manager = PaneManager()
        left = manager.active
        manager.split(Orientation.HORIZONTAL)
        right = manager.active

        assert manager.resize(Direction.RIGHT, 1) is True
        assert manager.nodes[right].weight == 2
        assert manager.nodes[left].weight == 1

        assert manager.resize(Direction.LEFT, -1) is True
        assert manager.nodes[right].weight == 1
        assert manager.nodes[left].weight == 2

    def test_shrink_grows_sibling(self):
        manager = PaneManager()
        top = manager.active
        manager.split(Orientation.VERTICAL)
        assert manager.resize(Direction.UP, -1) is True
        assert manager.nodes[manager.active].weight == 1
        assert manager.nodes[top].weight == 2

    def test_zero_amount_is_noop(self):
        manager = PaneManager()
        manager.split(Orientation.VERTICAL)
        assert manager.resize(Direction.UP, 0) is False

    def test_resize_walks_past_other_axis(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.VERTICAL)
        inner = manager.nodes[manager.active].parent

        assert manager.resize(Direction.RIGHT, 1) is True
        assert manager.nodes[inner].weight == 2


class TestBounds:
    """Tests for PaneManager.bounds()."""

    def test_even_horizontal_split(self):
        manager = PaneManager()
        left = manager.active
        manager.split(Orientation.HORIZONTAL)
        right = manager.active

        bounds = manager.bounds(Rect(0, 0, 100, 30))

        assert bounds[left] == Rect(0, 0, 50, 30)
        assert bounds[right] == Rect(50, 0, 50, 30)

    def test_weights_are_proportional(self):
        manager = PaneManager()
        top = manager.active
        manager.split(Orientation.VERTICAL)
        bottom = manager.active
        manager.resize(Direction.DOWN, 1)

        bounds = manager.bounds(Rect(0, 0, 80, 30))

        assert bounds[top].height == 10
        assert bounds[bottom] == Rect(0, 10, 80, 20)

    def test_odd_sizes_tile_exactly(self):
        manager = PaneManager()
        for _ in range(2):
            manager.split(Orientation.HORIZONTAL)
        assert_tiles(manager, Rect(3, 2, 101, 37))

    @pytest.mark.parametrize("seed", range(5))
    def test_random_edits_keep_invariants(self, seed):
        import random

        rng = random.Random(seed)
        manager = PaneManager()
        for _ in range(60):
            op = rng.choice(["split_h", "split_v", "kill", "cycle", "resize"])
            if op == "split_h":
                manager.split(Orientation.HORIZONTAL)
            elif op == "split_v":
                manager.split(Orientation.VERTICAL)
            elif op == "kill":
                manager.kill()
            elif op == "cycle":
                manager.cycle()
            else:
                manager.resize(rng.choice(list(Direction)), rng.choice([-2, -1, 1, 2]))
            manager.validate()
            assert manager.active in manager.leaves()
            assert_tiles(manager)


class TestNavigate:
    """Tests for PaneManager.navigate()."""

    def test_left_and_right(self):
        manager = PaneManager()
        left = manager.active
        manager.split(Orientation.HORIZONTAL)
        right = manager.active

        assert manager.navigate(Direction.LEFT, TOTAL) is True
        assert manager.active == left
        assert manager.navigate(Direction.LEFT, TOTAL) is False
        assert manager.active == left
        assert manager.navigate(Direction.RIGHT, TOTAL) is True
        assert manager.active == right

    def test_no_pane_in_direction(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        assert manager.navigate(Direction.UP, TOTAL) is False
        assert manager.navigate(Direction.DOWN, TOTAL) is False

    def test_picks_nearest_center(self):
        # Left column split into top/bottom, single pane on the right
        manager = PaneManager()
        top_left = manager.active
        manager.split(Orientation.HORIZONTAL)
        right = manager.active
        manager.active = top_left
        manager.split(Orientation.VERTICAL)
        bottom_left = manager.active

        assert manager.navigate(Direction.UP, TOTAL) is True
        assert manager.active == top_left
        assert manager.navigate(Direction.RIGHT, TOTAL) is True
        assert manager.active == right
        assert manager.navigate(Direction.LEFT, TOTAL) is True
        assert manager.active in (top_left, bottom_left)


class TestValidate:
    """Tests for PaneManager.validate()."""

    def test_zero_weight_rejected(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.nodes[manager.active].weight = 0
        with pytest.raises(InvalidTreeError):
            manager.validate()

    def test_single_child_split_rejected(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        split = manager.nodes[manager.root()].data
        orphan = split.children.pop()
        manager.nodes.remove(orphan)
        manager.active = split.children[0]
        with pytest.raises(InvalidTreeError):
            manager.validate()

    def test_active_must_be_leaf(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.active = manager.root()
        with pytest.raises(InvalidTreeError):
            manager.validate()


class TestPersistence:
    """Tests for PaneManager.to_dict() / from_dict()."""

    def _build(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        manager.split(Orientation.VERTICAL)
        manager.resize(Direction.DOWN, 2)
        manager.cycle()
        manager.split(Orientation.HORIZONTAL)
        manager.kill()
        return manager

    def test_round_trip(self):
        manager = self._build()
        restored = PaneManager.from_dict(manager.to_dict())

        assert restored.to_dict() == manager.to_dict()
        assert restored.leaves() == manager.leaves()
        assert restored.active == manager.active
        assert restored.bounds(TOTAL) == manager.bounds(TOTAL)

    def test_restored_counter_avoids_collisions(self):
        manager = self._build()
        data = manager.to_dict()
        data["id_counter"] = 1
        restored = PaneManager.from_dict(data)

        restored.split(Orientation.VERTICAL)

        ids = list(restored.friendly_ids.values())
        assert len(ids) == len(set(ids))

    def test_restored_tree_accepts_new_panes(self):
        restored = PaneManager.from_dict(self._build().to_dict())
        before = set(restored.nodes.keys())
        restored.split(Orientation.HORIZONTAL)
        assert restored.active not in before
        restored.validate()

    def test_missing_nodes_rejected(self):
        data = PaneManager().to_dict()
        del data["nodes"]
        with pytest.raises(InvalidTreeError):
            PaneManager.from_dict(data)

    def test_out_of_range_key_rejected(self):
        far = PaneKey(index=0xFFFFFFFF, version=1).to_token()
        data = {
            "active": far,
            "id_counter": 2,
            "friendly_ids": {far: 1},
            "nodes": [{"key": far, "parent": None, "kind": "Single", "weight": 1}],
        }
        with pytest.raises(InvalidTreeError, match="out of range"):
            PaneManager.from_dict(data)

    def test_unknown_kind_rejected(self):
        data = PaneManager().to_dict()
        data["nodes"][0]["kind"] = "Tabs"
        with pytest.raises(InvalidTreeError):
            PaneManager.from_dict(data)

    def test_two_roots_rejected(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        data = manager.to_dict()
        for entry in data["nodes"]:
            entry["parent"] = None
        with pytest.raises(InvalidTreeError):
            PaneManager.from_dict(data)

    def test_duplicate_key_rejected(self):
        data = PaneManager().to_dict()
        data["nodes"].append(dict(data["nodes"][0]))
        with pytest.raises(InvalidTreeError):
            PaneManager.from_dict(data)

    def test_dangling_child_rejected(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        data = manager.to_dict()
        split_entry = next(e for e in data["nodes"] if e["kind"] == "Split")
        split_entry["children"][1] = (9 << 32) | 9
        with pytest.raises(InvalidTreeError):
            PaneManager.from_dict(data)


class TestTreeDump:
    """Tests for PaneManager.__str__()."""

    def test_dump_lists_every_node(self):
        manager = PaneManager()
        manager.split(Orientation.HORIZONTAL)
        dump = str(manager)
        assert "Split (Horizontal)" in dump
        assert dump.count("Single ID:") == 2
