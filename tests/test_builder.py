from sitelocale.builder import build_translation_map, extract_anchors, flatten_tree
from sitelocale.structures import ContentTree, TranslationMap


def _tree(*nodes):
    return {"nodes": list(nodes)}


def test_single_text_node_maps_to_translation():
    default = _tree({"id": "n1", "text": "Welcome"})
    target = _tree({"id": "n1", "text": "Velkommen"})

    mapping = build_translation_map(default, target)

    assert mapping.to_dict() == {"Welcome": "Velkommen"}


def test_missing_or_empty_trees_yield_empty_map():
    target = _tree({"id": "n1", "text": "Velkommen"})

    assert len(build_translation_map(None, target)) == 0
    assert len(build_translation_map({}, target)) == 0
    assert len(build_translation_map({"nodes": []}, target)) == 0
    assert len(build_translation_map(target, "not a tree")) == 0


def test_identical_trees_produce_no_pairs():
    tree = _tree({"id": "n1", "text": "Same"}, {"id": "n2", "text": {"html": "<b>Same</b>"}})

    assert len(build_translation_map(tree, tree)) == 0


def test_anchor_markup_and_plain_text_from_different_nodes_both_register():
    default = _tree(
        {"id": "a", "text": {"html": '<a href="/x">Learn more</a>'}},
        {"id": "b", "text": "Learn more"},
    )
    target = _tree(
        {"id": "a", "text": {"html": '<a href="/x">Lær mere nu</a>'}},
        {"id": "b", "text": "Lær mere"},
    )

    mapping = build_translation_map(default, target)

    assert mapping['<a href="/x">Learn more</a>'] == '<a href="/x">Lær mere nu</a>'
    assert mapping["Learn more"] == "Lær mere"


def test_plain_text_is_suppressed_when_markup_already_registered_same_source():
    default = _tree(
        {"id": "a", "text": {"text": "Learn more", "html": "Learn more"}},
        {"id": "b", "text": "Learn more"},
    )
    target = _tree(
        {"id": "a", "text": {"text": "Lær mere nu", "html": "Lær mere nu"}},
        {"id": "b", "text": "Lær mere"},
    )

    mapping = build_translation_map(default, target)

    assert mapping.to_dict() == {"Learn more": "Lær mere nu"}


def test_anchors_are_paired_by_position_in_normalized_form():
    default = _tree(
        {
            "id": "p",
            "text": {
                "html": 'Read our <a href="/blog" data-w-id="1">blog</a> and <a href="/faq">FAQ</a>.'
            },
        }
    )
    target = _tree(
        {
            "id": "p",
            "text": {
                "html": 'Læs vores <a href="/da/blog">blog</a> og <a href="/faq">OSS</a>.'
            },
        }
    )

    mapping = build_translation_map(default, target)

    assert list(mapping)[0].startswith("Read our")
    assert mapping['<a href="/blog">blog</a>'] == '<a href="/da/blog">blog</a>'
    assert mapping['<a href="/faq">FAQ</a>'] == '<a href="/faq">OSS</a>'
    assert "blog" not in mapping
    assert "FAQ" not in mapping
    assert len(mapping) == 3


def test_first_plain_translation_wins_for_duplicate_sources():
    default = _tree({"id": "n1", "text": "Home"}, {"id": "n2", "text": "Home"})
    target = _tree({"id": "n1", "text": "Hjem"}, {"id": "n2", "text": "Forside"})

    mapping = build_translation_map(default, target)

    assert mapping.to_dict() == {"Home": "Hjem"}


def test_nodes_only_in_one_tree_are_ignored():
    default = _tree({"id": "n1", "text": "Welcome"}, {"id": "n2", "text": "Extra"})
    target = _tree({"id": "n1", "text": "Velkommen"}, {"id": "n3", "text": "Ekstra"})

    assert build_translation_map(default, target).to_dict() == {"Welcome": "Velkommen"}


def test_flatten_records_text_and_html_independently():
    tree = ContentTree.from_payload(
        _tree(
            {"_id": "n1", "text": {"text": "Hello", "html": "<em>Hello</em>"}},
            {"id": "n2", "type": "Image"},
        )
    )

    flattened = flatten_tree(tree)

    assert flattened["n1"].text == "Hello"
    assert flattened["n1"].html == "<em>Hello</em>"
    assert "n2" not in flattened


def test_reachable_walk_tolerates_cycles():
    tree = ContentTree.from_payload(
        _tree(
            {"id": "n1", "text": "One", "children": ["n2"]},
            {"id": "n2", "text": "Two", "children": ["n1", "n3"]},
            {"id": "n3", "text": "Three", "children": ["n2"]},
        )
    )

    visited = [node.node_id for node in tree.iter_reachable("n1")]

    assert visited == ["n1", "n2", "n3"]


def test_extract_anchors_strips_inner_tags_for_text():
    anchors = extract_anchors('<a class="btn" href="/x"><span>Go</span> now</a>')

    assert len(anchors) == 1
    assert anchors[0].href == "/x"
    assert anchors[0].text == "Go now"
    assert anchors[0].normalized == '<a href="/x"><span>Go</span> now</a>'


def test_translation_map_refuses_identity_and_orders_by_length():
    mapping = TranslationMap()

    assert mapping.register("Same", "Same") is False
    assert mapping.register("Hi", "Hej") is True
    assert mapping.register("Hello world", "Hej verden") is True
    assert mapping.register("Hi", "Goddag") is False

    assert [pair.source for pair in mapping.by_priority()] == ["Hello world", "Hi"]
    assert mapping["Hi"] == "Hej"
