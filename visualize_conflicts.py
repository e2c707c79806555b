#!/usr/bin/env python3
"""Draw the show conflict graph: an edge joins two shows nobody may hold together."""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from itertools import combinations
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib import colors as mpl_colors
from matplotlib.lines import Line2D
import networkx as nx

import lottery_io
from lottery import LotteryInputError, Show


@dataclass
class FillColoring:
    cmap: matplotlib.colors.Colormap
    norm: mpl_colors.Normalize

LAYOUT_CHOICES = ("spring", "component", "slot")
EDGE_STYLES = {"time": "solid", "play": "dashed", "both": "solid"}
EDGE_COLORS = {"time": "#4c72b0", "play": "#dd8452", "both": "#c44e52"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Visualize show conflicts")
    ap.add_argument("--theaters", default=Path("input") / "theaters.tsv", type=Path)
    ap.add_argument("--class-result", dest="class_result", default=None, type=Path,
                    help="Optional class.tsv to color shows by fill rate")
    ap.add_argument("--out-dir", default=Path("conflict_graphs"), type=Path, help="Directory for generated graph files")
    ap.add_argument("--out-prefix", default="conflicts", type=str,
                    help="Base filename prefix for graph images (suffixes are added per layout)")
    ap.add_argument("--layouts", nargs="+", default=list(LAYOUT_CHOICES), choices=LAYOUT_CHOICES,
                    help="One or more layout names to render")
    ap.add_argument("--dpi", default=160, type=int)
    return ap.parse_args(argv)


def conflict_kind(a: Show, b: Show) -> Optional[str]:
    same_time = a.time_slot == b.time_slot
    same_play = a.play == b.play
    if same_time and same_play:
        return "both"
    if same_time:
        return "time"
    if same_play:
        return "play"
    return None


def build_conflict_graph(shows: Sequence[Show], holders: Optional[Dict[str, List[str]]] = None) -> nx.Graph:
    graph = nx.Graph()
    for show in shows:
        filled = len((holders or {}).get(show.id, show.holders))
        graph.add_node(
            show.id,
            time_slot=show.time_slot,
            play=show.play,
            capacity=show.capacity,
            filled=filled,
            fill=(filled / show.capacity) if show.capacity else 1.0,
        )
    for a, b in combinations(shows, 2):
        kind = conflict_kind(a, b)
        if kind:
            graph.add_edge(a.id, b.id, kind=kind)
    return graph


def _layout_spring(graph: nx.Graph) -> Dict[str, Tuple[float, float]]:
    if len(graph.nodes) == 1:
        return {next(iter(graph.nodes)): (0.0, 0.0)}
    return nx.spring_layout(graph, seed=42)


def _layout_components(graph: nx.Graph) -> Dict[str, Tuple[float, float]]:
    positions: Dict[str, Tuple[float, float]] = {}
    spacing = 4.0
    x_cursor = 0.0
    for comp_nodes in sorted(nx.connected_components(graph), key=len, reverse=True):
        for idx, node in enumerate(sorted(comp_nodes)):
            positions[node] = (x_cursor, -idx)
        x_cursor += spacing
    return positions


def _layout_slot(graph: nx.Graph) -> Dict[str, Tuple[float, float]]:
    slots = sorted({graph.nodes[n]["time_slot"] for n in graph.nodes})
    plays = sorted({graph.nodes[n]["play"] for n in graph.nodes})
    return {
        n: (float(slots.index(graph.nodes[n]["time_slot"])), -float(plays.index(graph.nodes[n]["play"])))
        for n in graph.nodes
    }


LAYOUT_FNS = {
    "spring": _layout_spring,
    "component": _layout_components,
    "slot": _layout_slot,
}


def _fill_coloring() -> FillColoring:
    return FillColoring(cmap=plt.get_cmap("viridis"), norm=mpl_colors.Normalize(vmin=0.0, vmax=1.0))


def draw_graph_variants(graph: nx.Graph, out_dir: Path, out_prefix: str, *, layouts: List[str], dpi: int) -> List[Path]:
    if not graph.nodes:
        raise RuntimeError("No shows to visualize")
    out_dir.mkdir(parents=True, exist_ok=True)
    coloring = _fill_coloring()
    node_colors = [coloring.cmap(coloring.norm(graph.nodes[n]["fill"])) for n in graph.nodes]
    labels = {n: f"{n}\n{graph.nodes[n]['filled']}/{graph.nodes[n]['capacity']}" for n in graph.nodes}

    outputs: List[Path] = []
    for layout in layouts:
        pos = LAYOUT_FNS[layout](graph)
        fig, ax = plt.subplots(figsize=(10, 7))
        for kind, style in EDGE_STYLES.items():
            edges = [(u, v) for u, v, d in graph.edges(data=True) if d["kind"] == kind]
            if edges:
                nx.draw_networkx_edges(graph, pos, edgelist=edges, style=style,
                                       edge_color=EDGE_COLORS[kind], ax=ax, width=1.5)
        nx.draw_networkx_nodes(graph, pos, node_color=node_colors, node_size=700, edgecolors="#2f2f2f", ax=ax)
        nx.draw_networkx_labels(graph, pos, labels=labels, font_size=7, ax=ax)
        handles = [Line2D([0], [0], color=EDGE_COLORS[k], linestyle=EDGE_STYLES[k], label=f"same {k}")
                   for k in ("time", "play", "both")]
        ax.legend(handles=handles, loc="upper right", fontsize=8)
        sm = plt.cm.ScalarMappable(cmap=coloring.cmap, norm=coloring.norm)
        sm.set_array([])
        fig.colorbar(sm, ax=ax, label="Fill rate")
        ax.set_title(f"Show conflicts ({layout})")
        ax.axis("off")
        fig.tight_layout()
        path = out_dir / f"{out_prefix}_{layout}.png"
        fig.savefig(path, dpi=dpi)
        plt.close(fig)
        outputs.append(path)
    return outputs


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        shows = lottery_io.load_shows(args.theaters)
        holders = lottery_io.read_assignment_tsv(args.class_result) if args.class_result else None
    except LotteryInputError as e:
        raise SystemExit(f"error: {e}")
    graph = build_conflict_graph(shows, holders)
    for path in draw_graph_variants(graph, args.out_dir, args.out_prefix, layouts=args.layouts, dpi=args.dpi):
        print(f"Wrote graph to {path}")


if __name__ == "__main__":
    main()
