import rustworkx as rx


class AutogradGraph:
    """
    Read-only view of the gradient tape PyTorch records for a tensor.
    Every backward function reachable from ``tensor.grad_fn`` becomes a node,
    edges point from a function to the function that consumes its output.
    """
    __slots__ = ('graph', '_functions', '_indices', '_check_cycles', '_auto_cleanup')

    def __init__(self, check_for_cycles=True, auto_cleanup=True):
        self.graph = rx.PyDiGraph()
        # node index -> torch backward node, keeps the walked nodes alive
        self._functions = {}
        # torch backward node -> node index
        self._indices = {}
        self._check_cycles = check_for_cycles
        self._auto_cleanup = auto_cleanup

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self._check_cycles and self.check_cycle():
            raise RuntimeError("Cycle detected in autograd graph on context exit.")
        if self._auto_cleanup:
            self.clear()

    def add_tensor_graph(self, tensor):
        """Record the backward graph of ``tensor`` and return the root node index."""
        root = tensor.grad_fn
        if root is None:
            raise ValueError("Tensor without grad_fn (leaf or requires_grad=False) has no graph to record.")
        if root in self._indices:
            return self._indices[root]
        root_index = self._add_function(root)
        # only newly added nodes are expanded, recorded ones already carry their input edges
        stack = [root]
        while stack:
            fn = stack.pop()
            fn_index = self._indices[fn]
            for next_fn, _ in fn.next_functions:
                # inputs that do not require grad show up as None
                if next_fn is None:
                    continue
                if next_fn not in self._indices:
                    self._add_function(next_fn)
                    stack.append(next_fn)
                self.add_edge(self._indices[next_fn], fn_index)
        return root_index

    def _add_function(self, fn):
        # C++ nodes report qualified names, e.g. "torch::autograd::AccumulateGrad"
        index = self.graph.add_node(fn.name().rsplit("::", 1)[-1])
        self._functions[index] = fn
        self._indices[fn] = index
        return index

    def function(self, node_index):
        return self._functions[node_index]

    def add_edge(self, node_from, node_to, weight=None):
        if not all(isinstance(n, int) for n in (node_from, node_to)):
            raise TypeError("Node indices must be integers.")
        if not self.graph.has_node(node_from) or not self.graph.has_node(node_to):
            raise ValueError("Nodes must exist before adding edge.")
        self.graph.add_edge(node_from, node_to, weight)

    def check_cycle(self):
        return not rx.is_directed_acyclic_graph(self.graph)

    def reverse_toposort_from_node(self, node_index):
        """Names of ``node_index`` and its inputs in backward-pass order."""
        graph = self.graph
        predecessors = list(rx.ancestors(graph, node_index))
        predecessors.append(node_index)
        sub_graph = graph.subgraph(predecessors)
        return [sub_graph[i] for i in reversed(rx.topological_sort(sub_graph))]

    def leaf_names(self):
        graph = self.graph
        return [graph[i] for i in graph.node_indices() if graph.in_degree(i) == 0]

    def delete_node(self, node_index):
        if not isinstance(node_index, int):
            raise TypeError("Node index must be an integer.")
        if self.graph.has_node(node_index):
            self.graph.remove_node(node_index)
            fn = self._functions.pop(node_index, None)
            if fn is not None:
                del self._indices[fn]

    def delete_edge(self, node_from, node_to):
        if not self.graph.has_edge(node_from, node_to):
            raise ValueError("Edge does not exist.")
        self.graph.remove_edge(node_from, node_to)

    def clear(self):
        self._functions.clear()
        self._indices.clear()
        self.graph.clear()

    def __len__(self):
        return self.graph.num_nodes()

    def __repr__(self):
        return f"AutogradGraph(nodes={self.graph.num_nodes()}, edges={self.graph.num_edges()})"


def render_backward_graph(tensor):
    """One line per backward function, in the order backward() runs them."""
    with AutogradGraph() as graph:
        root = graph.add_tensor_graph(tensor)
        names = graph.reverse_toposort_from_node(root)
        header = repr(graph)
    lines = [header]
    lines.extend(f"  {i}: {name}" for i, name in enumerate(names))
    return "\n".join(lines)
