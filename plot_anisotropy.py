from __future__ import annotations

import argparse
import os

import numpy as np
import matplotlib
matplotlib.use("agg")
import matplotlib.pyplot as plt

from ellipsoid import Ellipsoid
from errors import NoIntersectionError
from plane_intersection import ellipse_points, intersect

# (normal axis, horizontal axis, vertical axis, title)
_VIEWS = ((2, 0, 1, "xy"), (1, 0, 2, "xz"), (0, 1, 2, "yz"))


def _load(path: str) -> dict[str, np.ndarray]:
    with np.load(path) as d:
        return {k: d[k] for k in d.files}


def plot_sections(ax, mil_vectors: np.ndarray, ellipsoid: Ellipsoid | None,
                  normal_axis: int, h: int, v: int, title: str) -> None:
    """MIL end points projected on one coordinate plane with the ellipsoid's central section."""
    ax.scatter(mil_vectors[:, h], mil_vectors[:, v], s=4, alpha=0.5, label="MIL vectors")
    if ellipsoid is not None:
        normal = np.zeros(3)
        normal[normal_axis] = 1.0
        try:
            c, a, b = intersect(ellipsoid, ellipsoid.center, normal)
            pts = ellipse_points(c, a, b, 200)
            ax.plot(pts[:, h], pts[:, v], color="C3", lw=1.5, label="fitted ellipsoid")
        except NoIntersectionError:
            ax.text(0.5, 0.5, "No section", ha='center', va='center', transform=ax.transAxes)
    ax.set_aspect("equal")
    ax.set_xlabel("xyz"[h])
    ax.set_ylabel("xyz"[v])
    ax.set_title(title)


def make_pngs(path: str, outdir: str) -> None:
    d = _load(path)
    os.makedirs(outdir, exist_ok=True)
    base = os.path.splitext(os.path.basename(path))[0]
    if "mil_vectors" not in d:
        print(f"No MIL vectors in {path}; nothing to plot")
        return

    ellipsoid = None
    if "radii" in d:
        ellipsoid = Ellipsoid(d["mil_center"], d["radii"], d["eigenvectors"])

    fig, axes = plt.subplots(1, 3, figsize=(15, 5))
    for ax, (n, h, v, title) in zip(axes, _VIEWS):
        plot_sections(ax, d["mil_vectors"], ellipsoid, n, h, v, title)
    axes[0].legend(loc="upper right", fontsize=8)
    if "degree_of_anisotropy" in d:
        fig.suptitle(f"DA = {float(d['degree_of_anisotropy']):.4f}")
    fig.savefig(os.path.join(outdir, f"{base}_mil_sections.png"), bbox_inches='tight')
    plt.close(fig)

    print(f"Wrote PNGs to {outdir}")


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('--input', required=True, help='npz written by analysis.py')
    ap.add_argument('--outdir', default=None, help='output directory for PNGs (default next to input)')
    args = ap.parse_args()

    outdir = args.outdir or os.path.dirname(args.input) or '.'
    make_pngs(args.input, outdir)


if __name__ == '__main__':
    main()
