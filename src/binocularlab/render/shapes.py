from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np


@dataclass(frozen=True)
class PointCloud:
    """Surface samples of a shape in its local frame."""

    points: np.ndarray  # (N,3)
    normals: np.ndarray  # (N,3), unit length (zero for lines)

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def transformed(self, R: np.ndarray | None = None, t: np.ndarray | None = None, scale: float = 1.0) -> "PointCloud":
        pts = self.points * float(scale)
        nrm = self.normals
        if R is not None:
            pts = pts @ R.T
            nrm = nrm @ R.T
        if t is not None:
            pts = pts + np.asarray(t, dtype=np.float64).reshape(1, 3)
        return PointCloud(points=pts, normals=nrm)


def concat(clouds: list[PointCloud]) -> PointCloud:
    if not clouds:
        return PointCloud(np.zeros((0, 3)), np.zeros((0, 3)))
    return PointCloud(
        points=np.concatenate([c.points for c in clouds], axis=0),
        normals=np.concatenate([c.normals for c in clouds], axis=0),
    )


def _normalize(v: np.ndarray) -> np.ndarray:
    n = np.linalg.norm(v, axis=-1, keepdims=True)
    return np.divide(v, n, out=np.zeros_like(v), where=n > 1e-12)


SurfaceFn = Callable[[np.ndarray, np.ndarray], np.ndarray]


def parametric_surface(
    f: SurfaceFn,
    u_range: tuple[float, float],
    v_range: tuple[float, float],
    n_u: int,
    n_v: int,
    wireframe: bool = False,
    wire_u: int = 24,
    wire_v: int = 8,
) -> PointCloud:
    """
    Sample f(u, v) -> (...,3). Solid mode samples the full (n_u, n_v) grid; wireframe
    mode samples `wire_u` iso-u curves and `wire_v` iso-v curves only.
    Normals come from finite differences of f.
    """
    if wireframe:
        us_line = np.linspace(*u_range, wire_u, endpoint=False)
        vs_line = np.linspace(*v_range, wire_v, endpoint=False)
        u_dense = np.linspace(*u_range, n_u)
        v_dense = np.linspace(*v_range, n_v)
        uu1, vv1 = np.meshgrid(us_line, v_dense, indexing="ij")
        uu2, vv2 = np.meshgrid(u_dense, vs_line, indexing="ij")
        uu = np.concatenate([uu1.reshape(-1), uu2.reshape(-1)])
        vv = np.concatenate([vv1.reshape(-1), vv2.reshape(-1)])
    else:
        uu, vv = np.meshgrid(np.linspace(*u_range, n_u), np.linspace(*v_range, n_v), indexing="ij")
        uu = uu.reshape(-1)
        vv = vv.reshape(-1)

    eps = 1e-4
    p = f(uu, vv)
    du = f(uu + eps, vv) - p
    dv = f(uu, vv + eps) - p
    normals = _normalize(np.cross(du, dv))
    return PointCloud(points=p, normals=normals)


def sphere(radius: float, n: int = 64, wireframe: bool = False) -> PointCloud:
    def f(u: np.ndarray, v: np.ndarray) -> np.ndarray:
        # u: azimuth, v: polar angle
        return radius * np.stack([np.sin(v) * np.cos(u), np.cos(v), np.sin(v) * np.sin(u)], axis=-1)

    cloud = parametric_surface(f, (0.0, 2.0 * np.pi), (1e-3, np.pi - 1e-3), 2 * n, n, wireframe, wire_u=16, wire_v=12)
    # Outward normals for a sphere are just the normalized positions.
    return PointCloud(points=cloud.points, normals=_normalize(cloud.points))


def torus_knot(
    radius: float = 1.0,
    tube: float = 0.3,
    p: int = 2,
    q: int = 3,
    tubular_segments: int = 256,
    radial_segments: int = 24,
    wireframe: bool = False,
) -> PointCloud:
    """(p, q) torus knot with a circular tube, same parametrization as the usual TorusKnot mesh."""

    def curve(u: np.ndarray) -> np.ndarray:
        cu, su = np.cos(u), np.sin(u)
        qu = q / p * u
        cs = np.cos(qu)
        return np.stack(
            [radius * (2.0 + cs) * 0.5 * cu, radius * (2.0 + cs) * su * 0.5, radius * np.sin(qu) * 0.5],
            axis=-1,
        )

    def f(u: np.ndarray, v: np.ndarray) -> np.ndarray:
        p1 = curve(u)
        p2 = curve(u + 0.01)
        T = p2 - p1
        N = p2 + p1
        B = _normalize(np.cross(T, N))
        N = _normalize(np.cross(B, T))
        cx = -tube * np.cos(v)
        cy = tube * np.sin(v)
        return p1 + cx[..., None] * N + cy[..., None] * B

    return parametric_surface(
        f,
        (0.0, 2.0 * np.pi * p),
        (0.0, 2.0 * np.pi),
        tubular_segments,
        radial_segments,
        wireframe,
        wire_u=64,
        wire_v=6,
    )


def segment(p0, p1, n: int = 32) -> PointCloud:
    a = np.asarray(p0, dtype=np.float64).reshape(1, 3)
    b = np.asarray(p1, dtype=np.float64).reshape(1, 3)
    t = np.linspace(0.0, 1.0, max(2, int(n)))[:, None]
    pts = a + t * (b - a)
    return PointCloud(points=pts, normals=np.zeros_like(pts))


_BOX_FACES = (
    (np.array([1.0, 0.0, 0.0]), 1, 2),
    (np.array([-1.0, 0.0, 0.0]), 1, 2),
    (np.array([0.0, 1.0, 0.0]), 0, 2),
    (np.array([0.0, -1.0, 0.0]), 0, 2),
    (np.array([0.0, 0.0, 1.0]), 0, 1),
    (np.array([0.0, 0.0, -1.0]), 0, 1),
)


def box(size: tuple[float, float, float] = (1.0, 1.0, 1.0), n: int = 32, wireframe: bool = False) -> PointCloud:
    half = 0.5 * np.asarray(size, dtype=np.float64)
    if wireframe:
        edges = []
        corners = np.array([[sx, sy, sz] for sx in (-1, 1) for sy in (-1, 1) for sz in (-1, 1)], dtype=np.float64)
        corners *= half[None, :]
        for i in range(8):
            for j in range(i + 1, 8):
                # Box edges join corners differing in exactly one coordinate.
                if int(np.count_nonzero(corners[i] != corners[j])) == 1:
                    edges.append(segment(corners[i], corners[j], n))
        return concat(edges)

    faces = []
    g = np.linspace(-1.0, 1.0, n)
    a, b = np.meshgrid(g, g, indexing="ij")
    for normal, ia, ib in _BOX_FACES:
        pts = np.zeros((a.size, 3), dtype=np.float64)
        axis = int(np.argmax(np.abs(normal)))
        pts[:, axis] = normal[axis] * half[axis]
        pts[:, ia] = a.reshape(-1) * half[ia]
        pts[:, ib] = b.reshape(-1) * half[ib]
        faces.append(PointCloud(points=pts, normals=np.repeat(normal[None, :], a.size, axis=0)))
    return concat(faces)


def dna_helix(rungs: int = 10, wireframe: bool = False) -> PointCloud:
    """Ladder of rungs: two beads and a bar per rung, each rung twisted 0.5 rad further."""
    parts = []
    bead = sphere(0.2, n=12, wireframe=wireframe)
    bar = box((2.0, 0.05, 0.05), n=24, wireframe=wireframe)
    for i in range(int(rungs)):
        a = 0.5 * i
        c, s = np.cos(a), np.sin(a)
        R = np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=np.float64)
        y = (i - rungs / 2) * 0.8
        parts.append(bead.transformed(R=R, t=R @ np.array([1.0, 0.0, 0.0]) + np.array([0.0, y, 0.0])))
        parts.append(bead.transformed(R=R, t=R @ np.array([-1.0, 0.0, 0.0]) + np.array([0.0, y, 0.0])))
        parts.append(bar.transformed(R=R, t=np.array([0.0, y, 0.0])))
    return concat(parts)


def ground_grid(size: float = 20.0, cell: float = 1.0, y: float = -2.0, samples_per_cell: int = 8) -> PointCloud:
    half = 0.5 * float(size)
    ticks = np.arange(-half, half + 0.5 * cell, cell)
    n = max(2, int(round(size / cell)) * int(samples_per_cell))
    lines = []
    for t in ticks:
        lines.append(segment((t, y, -half), (t, y, half), n))
        lines.append(segment((-half, y, t), (half, y, t), n))
    return concat(lines)


def subject_shape(object_type: str, wireframe: bool = False) -> PointCloud:
    if object_type == "torus":
        return torus_knot(1.0, 0.3, wireframe=wireframe)
    if object_type == "cube":
        return box((2.0, 2.0, 2.0), n=48, wireframe=wireframe)
    if object_type == "sphere":
        return sphere(1.5, n=64, wireframe=wireframe)
    if object_type == "dna":
        return dna_helix(10, wireframe=wireframe)
    raise ValueError(f"Unknown object type: {object_type!r}")
