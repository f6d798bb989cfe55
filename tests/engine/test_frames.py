"""Tests for frames and the frame pipeline."""

import pytest
from widget_app import Widget, WidgetConcept

from platemate.engine.concepts import ConceptRegistry
from platemate.engine.frames import Frame, Frames
from platemate.engine.patterns import Var
from platemate.engine.types import BindingConflictError

widget, name, rows = Var("widget"), Var("name"), Var("rows")


@pytest.fixture
def three_widgets(widgets: WidgetConcept) -> WidgetConcept:
    """Create three widgets."""
    for label in ("gear", "bolt", "nut"):
        widgets.create(label)
    return widgets


class TestFrame:
    """Tests for Frame."""

    def test_bind_returns_new_frame(self) -> None:
        """Binding should not modify the original frame."""
        frame = Frame({"a": 1})
        bound = frame.bind("b", 2)
        assert dict(frame) == {"a": 1}
        assert dict(bound) == {"a": 1, "b": 2}

    def test_bind_same_value_is_noop(self) -> None:
        """Rebinding a variable to an equal value should be allowed."""
        frame = Frame({"a": 1})
        assert frame.bind("a", 1) is frame

    def test_bind_conflict_raises(self) -> None:
        """Rebinding a variable to a different value should raise."""
        with pytest.raises(BindingConflictError):
            Frame({"a": 1}).bind("a", 2)

    def test_var_keys(self) -> None:
        """Var objects and names should be interchangeable."""
        frame = Frame({widget: "w1"})
        assert frame[widget] == "w1"
        assert frame["widget"] == "w1"
        assert widget in frame

    def test_traced_appends_id(self) -> None:
        """Tracing should keep bindings and extend the trace."""
        frame = Frame({"a": 1}).traced(3).traced(7)
        assert frame.trace == (3, 7)
        assert frame == {"a": 1}

    def test_equality_includes_trace(self) -> None:
        """Frames with different traces should differ."""
        assert Frame({"a": 1}, (1,)) != Frame({"a": 1}, (2,))


class TestQuery:
    """Tests for Frames.query."""

    @pytest.mark.asyncio
    async def test_three_rows_give_three_frames(
        self, registry: ConceptRegistry, three_widgets: WidgetConcept
    ) -> None:
        """Each returned row should yield one successor frame."""
        frames = Frames({"request": "r1"}, registry=registry)
        result = await frames.query(Widget._all, {}, {"widget": widget, "name": name})
        assert result == [
            {"request": "r1", "widget": "w1", "name": "gear"},
            {"request": "r1", "widget": "w2", "name": "bolt"},
            {"request": "r1", "widget": "w3", "name": "nut"},
        ]

    @pytest.mark.asyncio
    async def test_no_rows_drops_frame(self, registry: ConceptRegistry) -> None:
        """A frame whose query returns nothing should vanish."""
        frames = Frames({"widget": "missing"}, registry=registry)
        assert len(await frames.query(Widget._get, {"widget": widget}, {})) == 0

    @pytest.mark.asyncio
    async def test_output_literal_filters_rows(
        self, registry: ConceptRegistry, three_widgets: WidgetConcept
    ) -> None:
        """Literal output fields should filter rows."""
        frames = Frames({}, registry=registry)
        result = await frames.query(Widget._all, {}, {"widget": widget, "name": "bolt"})
        assert result == [{"widget": "w2"}]

    @pytest.mark.asyncio
    async def test_bound_output_variable_must_agree(
        self, registry: ConceptRegistry, three_widgets: WidgetConcept
    ) -> None:
        """An already-bound output variable should act as a filter."""
        frames = Frames({"name": "nut"}, registry=registry)
        result = await frames.query(Widget._all, {}, {"widget": widget, "name": name})
        assert result == [{"name": "nut", "widget": "w3"}]

    @pytest.mark.asyncio
    async def test_unbound_input_drops_frame(self, registry: ConceptRegistry) -> None:
        """A frame missing an input variable contributes nothing."""
        frames = Frames({"other": 1}, registry=registry)
        assert len(await frames.query(Widget._get, {"widget": widget}, {})) == 0

    @pytest.mark.asyncio
    async def test_idempotent(
        self, registry: ConceptRegistry, three_widgets: WidgetConcept
    ) -> None:
        """Querying twice over unchanged state should give equal results."""
        frames = Frames({}, registry=registry)
        first = await frames.query(Widget._all, {}, {"widget": widget})
        second = await frames.query(Widget._all, {}, {"widget": widget})
        assert first == second

    @pytest.mark.asyncio
    async def test_without_registry_raises(self) -> None:
        """Queries need a registry."""
        with pytest.raises(RuntimeError):
            await Frames({}).query(Widget._all, {}, {})


class TestAbsent:
    """Tests for Frames.absent."""

    @pytest.mark.asyncio
    async def test_keeps_frames_without_rows(
        self, registry: ConceptRegistry, three_widgets: WidgetConcept
    ) -> None:
        """Only frames whose query is empty should survive."""
        frames = Frames({"widget": "w1"}, {"widget": "w9"}, registry=registry)
        result = await frames.absent(Widget._get, {"widget": widget})
        assert result == [{"widget": "w9"}]


class TestFilterAndMap:
    """Tests for Frames.filter and Frames.map."""

    def test_filter(self) -> None:
        """Filter should keep matching frames in order."""
        frames = Frames({"n": 1}, {"n": 2}, {"n": 3})
        assert frames.filter(lambda f: f["n"] != 2) == [{"n": 1}, {"n": 3}]

    def test_filter_is_idempotent(self) -> None:
        """Filtering twice should not change the result."""
        frames = Frames({"n": 1}, {"n": 2})
        once = frames.filter(lambda f: f["n"] > 1)
        assert once.filter(lambda f: f["n"] > 1) == once

    def test_map(self) -> None:
        """Map should replace each frame."""
        frames = Frames({"n": 1}, {"n": 2})
        assert frames.map(lambda f: f.bind("double", f["n"] * 2)) == [
            {"n": 1, "double": 2},
            {"n": 2, "double": 4},
        ]

    def test_slice_returns_frames(self) -> None:
        """Slicing should keep the Frames type."""
        frames = Frames({"n": 1}, {"n": 2}, {"n": 3})
        assert isinstance(frames[1:], Frames)
        assert frames[1:] == [{"n": 2}, {"n": 3}]


class TestCollect:
    """Tests for Frames.collect."""

    def test_three_frames_give_one(self) -> None:
        """Frames sharing retained bindings fold into one frame."""
        frames = Frames(
            {"request": "r1", "widget": "w1", "name": "gear"},
            {"request": "r1", "widget": "w2", "name": "bolt"},
            {"request": "r1", "widget": "w3", "name": "nut"},
        )
        result = frames.collect([widget, name], rows)
        assert result == [
            {
                "request": "r1",
                "rows": [
                    {"widget": "w1", "name": "gear"},
                    {"widget": "w2", "name": "bolt"},
                    {"widget": "w3", "name": "nut"},
                ],
            }
        ]

    def test_groups_by_retained_bindings(self) -> None:
        """Each distinct retained combination gives one frame."""
        frames = Frames({"a": 1, "x": 1}, {"a": 2, "x": 2}, {"a": 1, "x": 3})
        result = frames.collect(["x"], "xs")
        assert result == [
            {"a": 1, "xs": [{"x": 1}, {"x": 3}]},
            {"a": 2, "xs": [{"x": 2}]},
        ]

    def test_empty_without_seed(self) -> None:
        """Nothing to collect and no seed means no frames."""
        assert len(Frames().collect(["x"], "xs")) == 0

    def test_empty_with_seed(self) -> None:
        """A seed should be returned with an empty collection."""
        seed = Frame({"request": "r1"}, (4,))
        result = Frames().collect(["x"], "xs", seed=seed)
        assert result == [{"request": "r1", "xs": []}]
        assert result[0].trace == (4,)

    def test_idempotent(self) -> None:
        """Collecting twice over the same frames gives the same result."""
        frames = Frames({"a": 1, "x": 1}, {"a": 1, "x": 2})
        assert frames.collect(["x"], "xs") == frames.collect(["x"], "xs")
