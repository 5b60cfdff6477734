import pytest
import torch

from gradplay.autograd_graph import AutogradGraph, render_backward_graph


def _mean_chain():
    x = torch.ones(2, 2, requires_grad=True)
    y = x + 2
    z = y * y * 3
    return x, z.mean()


def test_records_backward_chain():
    x, out = _mean_chain()
    with AutogradGraph() as graph:
        root = graph.add_tensor_graph(out)
        assert graph.graph[root] == "MeanBackward0"
        assert len(graph) == 5
        # y * y feeds AddBackward0 into MulBackward0 twice
        assert graph.graph.num_edges() == 5
        assert graph.reverse_toposort_from_node(root) == [
            "MeanBackward0",
            "MulBackward0",
            "MulBackward0",
            "AddBackward0",
            "AccumulateGrad",
        ]
        assert graph.leaf_names() == ["AccumulateGrad"]
        assert graph.check_cycle() is False
        assert graph.function(root) is out.grad_fn


def test_leaf_accumulator_points_at_leaf_tensor():
    x, out = _mean_chain()
    with AutogradGraph() as graph:
        graph.add_tensor_graph(out)
        leaves = [i for i in graph.graph.node_indices() if graph.graph.in_degree(i) == 0]
        assert len(leaves) == 1
        assert graph.function(leaves[0]).variable is x


def test_constant_inputs_are_skipped():
    x = torch.tensor([1.0, 2.0], requires_grad=True)
    c = torch.tensor([3.0, 4.0])
    y = x * c
    with AutogradGraph() as graph:
        root = graph.add_tensor_graph(y)
        assert graph.reverse_toposort_from_node(root) == ["MulBackward0", "AccumulateGrad"]


def test_two_leaves():
    a = torch.tensor([1.0], requires_grad=True)
    b = torch.tensor([2.0], requires_grad=True)
    out = (a * b).sum()
    with AutogradGraph() as graph:
        root = graph.add_tensor_graph(out)
        assert graph.leaf_names() == ["AccumulateGrad", "AccumulateGrad"]
        order = graph.reverse_toposort_from_node(root)
        assert order[:2] == ["SumBackward0", "MulBackward0"]


def test_untracked_tensor_rejected():
    graph = AutogradGraph()
    with pytest.raises(ValueError):
        graph.add_tensor_graph(torch.ones(2))
    with pytest.raises(ValueError):
        graph.add_tensor_graph(torch.ones(2, requires_grad=True))


def test_context_cleanup():
    _, out = _mean_chain()
    with AutogradGraph(auto_cleanup=True) as graph:
        graph.add_tensor_graph(out)
        assert len(graph) == 5
    assert len(graph) == 0
    assert repr(graph) == "AutogradGraph(nodes=0, edges=0)"


def test_no_cleanup_keeps_nodes():
    _, out = _mean_chain()
    with AutogradGraph(auto_cleanup=False) as graph:
        graph.add_tensor_graph(out)
    assert repr(graph) == "AutogradGraph(nodes=5, edges=5)"


def test_cycle_detected_on_exit():
    with pytest.raises(RuntimeError):
        with AutogradGraph() as graph:
            a = graph.graph.add_node("a")
            b = graph.graph.add_node("b")
            graph.add_edge(a, b)
            graph.add_edge(b, a)


def test_edge_and_node_misuse():
    graph = AutogradGraph()
    a = graph.graph.add_node("a")
    with pytest.raises(TypeError):
        graph.add_edge(a, "b")
    with pytest.raises(ValueError):
        graph.add_edge(a, 42)
    with pytest.raises(ValueError):
        graph.delete_edge(a, a)
    with pytest.raises(TypeError):
        graph.delete_node("a")
    graph.delete_node(a)
    # deleting a missing node is a no-op
    graph.delete_node(a)
    assert len(graph) == 0


def test_delete_edge():
    graph = AutogradGraph()
    a = graph.graph.add_node("a")
    b = graph.graph.add_node("b")
    graph.add_edge(a, b)
    graph.delete_edge(a, b)
    assert graph.graph.num_edges() == 0


def test_graph_survives_backward():
    _, out = _mean_chain()
    out.backward()
    text = render_backward_graph(out)
    assert text.splitlines()[0] == "AutogradGraph(nodes=5, edges=5)"
    assert text.splitlines()[1] == "  0: MeanBackward0"
    assert text.splitlines()[-1] == "  4: AccumulateGrad"


def test_roots_sharing_a_tape_reuse_nodes():
    x = torch.ones(3, requires_grad=True)
    y = x * 2
    with AutogradGraph() as graph:
        sum_root = graph.add_tensor_graph(y.sum())
        mean_root = graph.add_tensor_graph(y.mean())
        # SumBackward0, MeanBackward0, MulBackward0, AccumulateGrad
        assert len(graph) == 4
        assert graph.graph.num_edges() == 3
        assert graph.leaf_names() == ["AccumulateGrad"]
        assert graph.reverse_toposort_from_node(sum_root) == ["SumBackward0", "MulBackward0", "AccumulateGrad"]
        assert graph.reverse_toposort_from_node(mean_root) == ["MeanBackward0", "MulBackward0", "AccumulateGrad"]


def test_adding_same_tensor_twice_is_idempotent():
    _, out = _mean_chain()
    with AutogradGraph() as graph:
        first = graph.add_tensor_graph(out)
        second = graph.add_tensor_graph(out)
        assert first == second
        assert repr(graph) == "AutogradGraph(nodes=5, edges=5)"


def test_deleted_node_is_recorded_again():
    x = torch.ones(2, requires_grad=True)
    y = x * 2
    with AutogradGraph() as graph:
        root = graph.add_tensor_graph(y)
        graph.delete_node(root)
        assert len(graph) == 1
        root = graph.add_tensor_graph(y)
        assert graph.reverse_toposort_from_node(root) == ["MulBackward0", "AccumulateGrad"]
        assert len(graph) == 2
