from __future__ import annotations

import argparse
import json
import logging
import os
import time

import numpy as np
from scipy import ndimage

from anisotropy import calculate_anisotropy
from config import AnalysisConfig, load_config
from ellipsoid_fit import fit_ellipsoid
from errors import EllipsoidFittingFailedError
from euler import connectivity_metrics
from phantoms import PHANTOMS, make_phantom
from volume import as_binary_volume


def deepest_point(volume: np.ndarray) -> np.ndarray | None:
    """Foreground voxel farthest from the background, or None for an empty volume."""
    mask = as_binary_volume(volume)
    if not mask.any():
        return None
    # Pad so the volume border counts as background
    dist = ndimage.distance_transform_edt(np.pad(mask, 1))[1:-1, 1:-1, 1:-1]
    return np.array(np.unravel_index(int(np.argmax(dist)), dist.shape), dtype=np.float64)


def analyze(volume: np.ndarray, cfg: AnalysisConfig, verbose: bool = False) -> dict:
    """Run connectivity, anisotropy and a single ellipsoid fit on one volume.

    Fitting failures are reported in the output rather than raised: the
    corresponding entries are NaN and ``*_error`` holds the reason.
    """
    mask = as_binary_volume(volume)
    out: dict = {"shape": np.array(mask.shape, dtype=np.int64),
                 "spacing": np.array(cfg.spacing, dtype=np.float64),
                 "foreground_fraction": np.float64(mask.mean())}

    t0 = time.time()
    conn = connectivity_metrics(mask, cfg.spacing)
    out.update({k: np.float64(v) for k, v in conn.items()})
    t_conn = time.time()
    if verbose:
        print(f"euler={conn['euler']:.3f} connectivity={conn['connectivity']:.3f} "
              f"conn_density={conn['connectivity_density']:.6g} ({t_conn - t0:.2f}s)")

    a = cfg.anisotropy

    def _progress(done: int, total: int) -> None:
        if verbose and (done == total or done % max(1, total // 10) == 0):
            print(f"  MIL directions {done}/{total}")

    try:
        res = calculate_anisotropy(mask, a.directions, a.lines_per_direction, a.sampling_spacing,
                                   seed=a.seed, progress=_progress, max_workers=a.max_workers)
        out.update({
            "degree_of_anisotropy": np.float64(res.degree_of_anisotropy),
            "radii": res.radii,
            "eigenvectors": res.eigenvectors,
            "eigenvalues": res.eigenvalues,
            "mil_center": np.array(res.ellipsoid.center),
            "mil_vectors": res.mil_vectors,
        })
        if verbose:
            print(f"DA={res.degree_of_anisotropy:.4f} radii={np.round(res.radii, 3).tolist()}")
    except EllipsoidFittingFailedError as e:
        print(f"WARNING: anisotropy failed: {e}")
        out["degree_of_anisotropy"] = np.float64(np.nan)
        out["anisotropy_error"] = np.array(str(e))
    t_da = time.time()

    seed = deepest_point(mask)
    if seed is not None:
        f = cfg.ellipsoid_fit
        try:
            ell = fit_ellipsoid(mask, seed, n_directions=f.n_directions,
                                max_iterations=f.max_iterations, tolerance=f.tolerance)
            out.update({
                "fit_seed": seed,
                "fit_center": np.array(ell.center),
                "fit_radii": np.array(ell.radii),
                "fit_orientation": np.array(ell.orientation),
                "fit_volume": np.float64(ell.volume),
            })
            if verbose:
                print(f"ellipsoid at {np.round(ell.center, 2).tolist()} radii={np.round(ell.radii, 2).tolist()}")
        except EllipsoidFittingFailedError as e:
            print(f"WARNING: ellipsoid fit failed: {e}")
            out["fit_error"] = np.array(str(e))
    t_fit = time.time()

    if verbose:
        print(f"times: connectivity={t_conn-t0:.2f}s anisotropy={t_da-t_conn:.2f}s fit={t_fit-t_da:.2f}s")
    return out


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", default=None, help="YAML run configuration")
    ap.add_argument("--phantom", default=None, choices=PHANTOMS,
                    help="synthetic volume to analyse (overrides the config)")
    ap.add_argument("--size", type=int, default=None)
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--outdir", default=None)
    ap.add_argument("--plot", action="store_true", help="also write PNGs of the MIL ellipsoid")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    cfg = load_config(args.config) if args.config else AnalysisConfig()
    if args.phantom:
        cfg.phantom = args.phantom
    if args.size:
        cfg.size = args.size
    if args.seed is not None:
        cfg.seed = args.seed
        cfg.anisotropy.seed = args.seed
    if args.outdir:
        cfg.output_dir = args.outdir
    verbose = cfg.verbose or args.verbose
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    if cfg.phantom is None:
        ap.error("no volume: pass --phantom or set 'phantom' in the config")

    volume = make_phantom(cfg.phantom, cfg.size, seed=cfg.seed)
    out = analyze(volume, cfg, verbose=verbose)

    os.makedirs(cfg.output_dir, exist_ok=True)
    path = os.path.join(cfg.output_dir, f"{cfg.phantom}_{cfg.size}.npz")
    np.savez(path, **out)
    meta = {
        "phantom": cfg.phantom,
        "size": int(cfg.size),
        "seed": cfg.seed,
        "anisotropy": vars(cfg.anisotropy),
        "ellipsoid_fit": vars(cfg.ellipsoid_fit),
        "output_npz": os.path.basename(path),
    }
    with open(os.path.join(cfg.output_dir, f"{cfg.phantom}_{cfg.size}.meta.json"), "w") as f:
        json.dump(meta, f, indent=2)
    print(f"Wrote {path}")

    if cfg.plot or args.plot:
        from plot_anisotropy import make_pngs
        make_pngs(path, cfg.output_dir)


if __name__ == "__main__":
    main()
