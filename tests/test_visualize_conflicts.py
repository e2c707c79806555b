from __future__ import annotations

from pathlib import Path

import pytest

import visualize_conflicts as viz
from tests.utils import make_shows

SHOWS = [
    ("S1", "mon", "hamlet", 2),
    ("S2", "mon", "lear", 4),
    ("S3", "tue", "hamlet", 1),
    ("S4", "wed", "tempest", 0),
    ("S5", "mon", "hamlet", 3),
]


def test_edges_join_shows_sharing_a_slot_or_play() -> None:
    graph = viz.build_conflict_graph(make_shows(SHOWS))

    assert set(graph.nodes) == {"S1", "S2", "S3", "S4", "S5"}
    assert graph.edges["S1", "S2"]["kind"] == "time"
    assert graph.edges["S1", "S3"]["kind"] == "play"
    assert graph.edges["S1", "S5"]["kind"] == "both"
    assert not graph.has_edge("S2", "S3")
    assert graph.degree["S4"] == 0


def test_fill_comes_from_class_result() -> None:
    graph = viz.build_conflict_graph(make_shows(SHOWS), {"S1": ["A", "B"], "S2": ["C"]})
    assert graph.nodes["S1"]["fill"] == 1.0
    assert graph.nodes["S2"]["fill"] == 0.25
    assert graph.nodes["S3"]["filled"] == 0
    assert graph.nodes["S4"]["fill"] == 1.0


def test_draw_writes_one_png_per_layout(tmp_path: Path) -> None:
    graph = viz.build_conflict_graph(make_shows(SHOWS))
    paths = viz.draw_graph_variants(graph, tmp_path / "graphs", "conf", layouts=list(viz.LAYOUT_CHOICES), dpi=60)
    assert [p.name for p in paths] == ["conf_spring.png", "conf_component.png", "conf_slot.png"]
    assert all(p.exists() and p.stat().st_size > 0 for p in paths)


def test_draw_refuses_empty_graph(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        viz.draw_graph_variants(viz.build_conflict_graph([]), tmp_path, "x", layouts=["spring"], dpi=60)


def test_main_reports_missing_theaters_without_traceback(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        viz.main(["--theaters", str(tmp_path / "missing.tsv"), "--out-dir", str(tmp_path / "graphs")])
    assert str(exc.value.code).startswith("error: Could not read")
    assert "missing.tsv" in str(exc.value.code)
    assert not (tmp_path / "graphs").exists()
