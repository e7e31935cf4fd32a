import networkx as nx
import matplotlib.pyplot as plt

from tracepoints.ref_deltas import RefDeltaCalculator


class CallTreeGraph(nx.DiGraph):
    """
    A directed graph of the merged call tree. Every node has a label and a level
    (its depth below the tree root), and can be plotted with nodes positioned
    horizontally by level.
    """

    def add_node(self, node_for_adding, **attr):
        """Add a node to the graph, ensuring it has a label."""
        if 'label' not in attr:
            raise ValueError(f"Node {node_for_adding} must have a label")
        super().add_node(node_for_adding, **attr)

    @classmethod
    def from_call_tree(cls, roots, deltas: RefDeltaCalculator = None):
        """
        Build the graph from call tree roots.

        Node ids are the tuple of function ids on the path from the root, so the
        same function reached through different callers gives different nodes.
        """
        graph = cls()
        with_deltas = deltas is not None and deltas.is_computed
        pending = [(root, (root.function.id,), None, 0) for root in roots]
        while pending:
            node, path, parent, level = pending.pop()
            attr = {
                'label': node.function.name,
                'hit_count': node.hit_count,
                'level': level,
            }
            if with_deltas:
                attr['delta'] = deltas.delta(node.function)
            graph.add_node(path, **attr)
            if parent is not None:
                graph.add_edge(parent, path, weight=node.hit_count)
            for child in node.children.values():
                pending.append((child, path + (child.function.id,), path, level + 1))
        return graph

    def roots(self):
        return [n for n in self.nodes() if self.in_degree(n) == 0]

    def plot(self, figsize=(10, 6), node_size=500, font_size=10, vertical_spacing=1.0, title=None, **kwargs):
        """
        Plot the graph with nodes positioned horizontally based on their level.

        Parameters:
        -----------
        figsize : tuple
            Size of the figure (width, height)
        node_size : int
            Size of the nodes in the plot
        font_size : int
            Size of the font for node labels
        vertical_spacing : float
            Spacing between nodes in the same level
        title : str, optional
            Title for the plot
        **kwargs : dict
            Additional arguments passed to nx.draw
        """
        pos = {}
        nodes_at_level = {}

        for node in nx.dfs_preorder_nodes(self):
            level = self.nodes[node]['level']
            nodes_at_level[level] = nodes_at_level.get(level, -1) + 1
            pos[node] = (level, -nodes_at_level[level] * vertical_spacing)

        labels = {}
        for n, data in self.nodes(data=True):
            label = f"{data['label']} ({data['hit_count']})"
            if 'delta' in data:
                label += f" {data['delta']:+d}"
            labels[n] = label

        plt.figure(figsize=figsize)
        nx.draw(
            self,
            pos=pos,
            with_labels=True,
            labels=labels,
            node_size=node_size,
            font_size=font_size,
            **kwargs
        )

        if title:
            plt.title(title)

        plt.tight_layout()
        plt.show()
