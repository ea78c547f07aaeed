"""
Tests for the hierarchical auto layout.
"""

import pytest


@pytest.fixture
def diamond(make_workflow):
    return make_workflow(
        [("s", "start"), ("a", "agent"), ("b", "agent"), ("e", "end")],
        [("s", "a"), ("s", "b"), ("a", "e"), ("b", "e")],
    )


class TestAutoLayout:
    """Test level assignment and placement."""

    def test_every_node_placed_once(self, diamond):
        from flowbuilder.workflow.layout import apply_layout

        result = apply_layout(diamond.nodes, diamond.connections)

        assert len(result) == len(diamond.nodes)
        assert sorted(n.id for n in result) == sorted(n.id for n in diamond.nodes)

    def test_levels_stack_downwards(self, diamond):
        from flowbuilder.workflow.layout import apply_layout

        positions = {n.id: n.position for n in apply_layout(diamond.nodes, diamond.connections)}

        assert positions["s"].y < positions["a"].y
        assert positions["a"].y == positions["b"].y
        assert positions["e"].y > positions["a"].y
        assert positions["a"].x != positions["b"].x

    def test_grid_coordinates(self, diamond):
        from flowbuilder.workflow.layout import apply_layout

        positions = {n.id: n.position for n in apply_layout(diamond.nodes, diamond.connections)}

        assert (positions["s"].x, positions["s"].y) == (100, 100)
        assert (positions["a"].x, positions["a"].y) == (100, 300)
        assert (positions["b"].x, positions["b"].y) == (580, 300)
        assert (positions["e"].x, positions["e"].y) == (100, 500)

    def test_left_to_right_direction(self, diamond):
        from flowbuilder.workflow.layout import AutoLayout, LayoutConfig

        layout = AutoLayout(LayoutConfig(direction="LR"))
        positions = {n.id: n.position for n in layout.apply_layout(diamond.nodes, diamond.connections)}

        assert positions["s"].x < positions["a"].x < positions["e"].x
        assert positions["a"].x == positions["b"].x

    def test_unreachable_cycle_goes_to_last_level(self, make_workflow):
        from flowbuilder.workflow.layout import apply_layout

        workflow = make_workflow(
            [("s", "start"), ("e", "end"), ("x", "agent"), ("y", "agent")],
            [("s", "e"), ("x", "y"), ("y", "x")],
        )
        positions = {n.id: n.position for n in apply_layout(workflow.nodes, workflow.connections)}

        assert positions["x"].y == positions["y"].y
        assert positions["x"].y > positions["e"].y

    def test_second_root_claims_node_first(self, make_workflow):
        from flowbuilder.workflow.layout import apply_layout

        # b is two hops from s but one hop from r, and r is dequeued before a
        workflow = make_workflow(
            [("s", "start"), ("a", "agent"), ("b", "agent"), ("r", "agent")],
            [("s", "a"), ("a", "b"), ("r", "b")],
        )
        positions = {n.id: n.position for n in apply_layout(workflow.nodes, workflow.connections)}

        assert positions["s"].y == positions["r"].y == 100
        assert positions["a"].y == positions["b"].y == 300
        assert positions["a"].x != positions["b"].x

    def test_no_overlapping_positions(self, make_workflow):
        from flowbuilder.workflow.layout import apply_layout

        workflow = make_workflow(
            [("s", "start"), ("a", "agent"), ("b", "agent"), ("c", "agent"), ("e", "end")],
            [("s", "a"), ("s", "b"), ("s", "c"), ("a", "e"), ("a", "e")],
        )
        result = apply_layout(workflow.nodes, workflow.connections)

        coords = [(n.position.x, n.position.y) for n in result]
        assert len(set(coords)) == len(coords)

    def test_dead_connections_are_ignored(self, make_workflow):
        from flowbuilder.workflow.layout import apply_layout

        workflow = make_workflow(
            [("s", "start"), ("e", "end")],
            [("s", "ghost"), ("ghost", "e"), ("s", "e")],
        )
        positions = {n.id: n.position for n in apply_layout(workflow.nodes, workflow.connections)}

        assert positions["e"].y > positions["s"].y

    def test_input_not_mutated(self, diamond):
        from flowbuilder.workflow.layout import apply_layout

        before = [n.model_dump() for n in diamond.nodes]
        result = apply_layout(diamond.nodes, diamond.connections)

        assert [n.model_dump() for n in diamond.nodes] == before
        assert result[0] is not diamond.nodes[0]
        assert result[0].data == diamond.nodes[0].data

    def test_empty_input(self):
        from flowbuilder.workflow.layout import apply_layout

        assert apply_layout([], []) == []

    def test_center_offset(self, make_node):
        from flowbuilder.workflow.layout import AutoLayout

        nodes = [make_node("a", "agent", x=0, y=0), make_node("b", "agent", x=200, y=0)]
        offset = AutoLayout().center_offset(nodes, viewport_width=1000, viewport_height=480)

        # drawing is 480 x 80
        assert offset.x == 260
        assert offset.y == 200
