"""Random graphs and linear SEM data for exercising the searches.

This module provides a scale-free DAG generator and a linear structural
equation model sampler, used to produce data with a known structure.
"""

from __future__ import annotations

import networkx as nx
import numpy as np
import pandas as pd

__all__ = ["scale_free_dag", "generate_linear_sem_data"]


def scale_free_dag(
    num_measures: int,
    num_latents: int = 0,
    alpha: float = 0.05,
    beta: float = 0.9,
    delta_in: float = 3.0,
    delta_out: float = 0.1,
    random_state: int | None = None,
) -> nx.DiGraph:
    """Generate a scale-free DAG with the Bollobas et al. preferential attachment.

    ``alpha`` is the probability of adding a new node with an edge out of
    it, ``beta`` of adding an edge between existing nodes and the rest
    (``1 - alpha - beta``) of a new node with an edge into it. Self-loops and
    parallel edges are dropped and the remaining edges are oriented along a
    random node order, so the result is acyclic.

    Args:
        num_measures: Number of measured variables
        num_latents: Number of additional latent variables
        alpha: Probability of a new node with an out-edge
        beta: Probability of an edge between existing nodes
        delta_in: Bias for choosing nodes by in-degree
        delta_out: Bias for choosing nodes by out-degree
        random_state: Random seed

    Returns:
        DiGraph with nodes ``X1..Xn``; latent nodes carry ``latent=True``
    """
    n_nodes = num_measures + num_latents
    if num_measures < 1 or num_latents < 0:
        raise ValueError("Need at least one measured variable and no negative latents")
    if alpha <= 0 or beta <= 0 or alpha + beta >= 1:
        raise ValueError("alpha and beta must be positive with alpha + beta < 1")

    rng = np.random.RandomState(random_state)

    if n_nodes < 3:
        raw_edges: list[tuple[int, int]] = [(0, 1)] if n_nodes == 2 else []
    else:
        multigraph = nx.scale_free_graph(
            n_nodes,
            alpha=alpha,
            beta=beta,
            gamma=1.0 - alpha - beta,
            delta_in=delta_in,
            delta_out=delta_out,
            seed=int(rng.randint(0, 2**31 - 1)),
        )
        raw_edges = list(multigraph.edges())

    position = rng.permutation(n_nodes)
    latent = set(rng.choice(n_nodes, size=num_latents, replace=False).tolist())

    dag = nx.DiGraph()
    for node in range(n_nodes):
        dag.add_node(f"X{node + 1}", latent=node in latent)

    for u, v in raw_edges:
        if u == v:
            continue
        if position[u] > position[v]:
            u, v = v, u
        dag.add_edge(f"X{u + 1}", f"X{v + 1}")

    return dag


def generate_linear_sem_data(
    dag: nx.DiGraph,
    n_samples: int = 1000,
    noise_std: float = 1.0,
    edge_weight_range: tuple[float, float] = (0.5, 2.0),
    random_state: int | None = None,
    include_latents: bool = False,
) -> pd.DataFrame:
    """Generate data from a linear structural equation model (SEM).

    Args:
        dag: DAG to generate data from; an edge ``weight`` attribute is used
            as the coefficient when present
        n_samples: Number of samples to generate
        noise_std: Standard deviation of noise terms
        edge_weight_range: Range of absolute values for random edge weights
        random_state: Random seed
        include_latents: Keep columns of nodes marked ``latent=True``

    Returns:
        DataFrame with one column per (measured) node, in node order
    """
    if not nx.is_directed_acyclic_graph(dag):
        raise ValueError("Graph contains cycles - not a valid DAG")

    rng = np.random.RandomState(random_state)
    variable_names = list(dag.nodes())

    edge_weights = {}
    for u, v, attrs in dag.edges(data=True):
        weight = attrs.get("weight")
        if weight is None:
            weight = rng.uniform(edge_weight_range[0], edge_weight_range[1])
            if rng.random_sample() < 0.5:  # Random sign
                weight *= -1
        edge_weights[(u, v)] = weight

    columns: dict[str, np.ndarray] = {}
    for var in nx.topological_sort(dag):
        values = rng.normal(0, noise_std, n_samples)
        for parent in dag.predecessors(var):
            values = values + edge_weights[(parent, var)] * columns[parent]
        columns[var] = values

    data = pd.DataFrame({var: columns[var] for var in variable_names})

    if not include_latents:
        latent = [var for var in variable_names if dag.nodes[var].get("latent", False)]
        data = data.drop(columns=latent)

    return data
