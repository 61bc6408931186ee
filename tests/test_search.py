from coroot.search import render


def test_applications_sorted_by_name_not_namespace():
    view = render(
        ["zzz:Deployment:catalog", "aaa:StatefulSet:postgres", "default:Deployment:api"],
        [],
    )
    assert view.applications == [
        "default:Deployment:api",
        "zzz:Deployment:catalog",
        "aaa:StatefulSet:postgres",
    ]


def test_nodes_sorted():
    view = render([], ["node-b", "node-a", "node-c"])
    assert view.nodes == ["node-a", "node-b", "node-c"]


def test_to_dict_shape():
    view = render(["ns:Deployment:web"], ["n1"])
    assert view.to_dict() == {
        "applications": [{"id": "ns:Deployment:web"}],
        "nodes": [{"name": "n1"}],
    }


def test_empty():
    assert render([], []).to_dict() == {"applications": [], "nodes": []}