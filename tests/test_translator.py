from sitelocale import apply_translations, build_translation_map
from sitelocale.structures import TranslationMap
from sitelocale.translator import MarkupTranslator, WorkingCopy


def test_end_to_end_welcome_page():
    mapping = build_translation_map(
        {"nodes": [{"id": "n1", "text": "Welcome"}]},
        {"nodes": [{"id": "n1", "text": "Velkommen"}]},
    )

    assert apply_translations("<h1>Welcome</h1>", mapping) == "<h1>Velkommen</h1>"


def test_empty_map_returns_document_unchanged():
    document = '<html lang="en"><body><p class="x">Hello &amp; bye</p></body></html>'

    assert apply_translations(document, {}) == document
    assert apply_translations(document, TranslationMap()) == document


def test_longer_fragments_are_substituted_first():
    document = "<p>Hello world, this is a longer sentence.</p><p>Hello</p>"
    mapping = {
        "Hello": "Hej",
        "Hello world, this is a longer sentence.": "Hej verden, dette er en længere sætning.",
    }

    assert (
        apply_translations(document, mapping)
        == "<p>Hej verden, dette er en længere sætning.</p><p>Hej</p>"
    )


def test_translating_twice_is_stable():
    mapping = {"Welcome": "Velkommen"}
    once = apply_translations("<h1>Welcome</h1>", mapping)

    assert apply_translations(once, mapping) == once


def test_source_contained_in_target_is_not_rewritten_again():
    mapping = {"Learn": "Learn more"}
    document = "<p>Learn more</p>"

    assert apply_translations(document, mapping) == document
    assert apply_translations("<p>Learn</p>", mapping) == "<p>Learn more</p>"


def test_anchor_translation_restores_presentation_attributes():
    document = '<p><a href="/x" class="btn w-button" target="_blank">Original</a></p>'
    mapping = {'<a href="/x">Original</a>': '<a href="/x">Oversat</a>'}

    assert (
        apply_translations(document, mapping)
        == '<p><a href="/x" target="_blank" class="btn w-button">Oversat</a></p>'
    )


def test_generated_class_tokens_are_tolerated_and_restored():
    document = '<h1 class="heading w-mod-x">Hello</h1>'
    mapping = {'<h1 class="heading">Hello</h1>': '<h1 class="heading">Hej</h1>'}

    assert apply_translations(document, mapping) == '<h1 class="heading w-mod-x">Hej</h1>'


def test_identifier_attributes_are_ignored_for_matching():
    document = '<p><a href="/x">Go</a></p>'
    mapping = {'<a href="/x" data-w-id="abc">Go</a>': '<a href="/x" data-w-id="abc">Gå</a>'}

    assert apply_translations(document, mapping) == '<p><a href="/x">Gå</a></p>'


def test_entities_in_fragments_are_decoded_before_matching():
    document = "<p>Café <b>menu</b> here</p>"
    mapping = {"Caf&eacute; <b>menu</b>": "Caf&eacute; <b>menukort</b>"}

    assert apply_translations(document, mapping) == "<p>Café <b>menukort</b> here</p>"


def test_multi_line_sources_fall_back_to_lines():
    document = "<p>First line</p>\n<p>Second line</p>"
    mapping = {"First line\nSecond line": "Første linje\nAnden linje"}

    assert apply_translations(document, mapping) == "<p>Første linje</p>\n<p>Anden linje</p>"


def test_whitespace_variants_are_tried_for_single_lines():
    document = "<p>Hello there</p>"
    mapping = {"Hello   there  ": "Hej   der  "}

    assert apply_translations(document, mapping) == "<p>Hej der</p>"


def test_unmatched_entries_do_not_disturb_others():
    translator = MarkupTranslator()
    result = translator.translate(
        "<h1>Welcome</h1>",
        {"Welcome": "Velkommen", "Missing text": "Manglende tekst"},
    )

    assert result.html == "<h1>Velkommen</h1>"
    assert result.applied == ["Welcome"]
    assert result.unmatched == ["Missing text"]
    assert result.malformed is False


def test_unterminated_markup_is_flagged_but_translated():
    result = MarkupTranslator().translate(
        '<p>Welcome</p><div class="x"', {"Welcome": "Velkommen"}
    )

    assert result.malformed is True
    assert result.html == '<p>Velkommen</p><div class="x"'


def test_untouched_regions_keep_their_exact_bytes():
    document = (
        '<head><link rel="alternate" hreflang="en" href="/"></head>'
        '<body><input  disabled><p>Welcome</p>'
        '<a href="/da" target="_blank" hreflang="da">Dansk</a></body>'
    )

    assert apply_translations(document, {"Welcome": "Velkommen"}) == document.replace(
        "Welcome", "Velkommen"
    )


def test_working_copy_locks_replaced_text():
    working = WorkingCopy("<p>Good morning</p>")

    assert working.replace_all("Good morning", "God morgen, Good") == 1
    assert working.replace_all("Good", "God") == 0
    assert working.render() == "<p>God morgen, Good</p>"


def test_text_attribute_is_translated_without_touching_the_rest_of_the_tag():
    document = '<a title="Welcome" href="/x" target="_blank">Hi</a><h1>Welcome</h1>'

    assert (
        apply_translations(document, {"Welcome": "Velkommen"})
        == '<a title="Velkommen" href="/x" target="_blank">Hi</a><h1>Velkommen</h1>'
    )


def test_attribute_edits_keep_every_other_attribute_byte_for_byte():
    document = (
        '<a hreflang="da" data-w-id="9" title="Home page" href="/da"  target="_blank">'
        '<img alt="Home page" src="/h.png" class="icon w-x"></a><p>Home</p>'
    )
    mapping = {"Home page": "Forside", "Home": "Hjem"}

    assert apply_translations(document, mapping) == (
        '<a hreflang="da" data-w-id="9" title="Forside" href="/da"  target="_blank">'
        '<img alt="Forside" src="/h.png" class="icon w-x"></a><p>Hjem</p>'
    )


def test_several_values_in_one_tag_are_edited_in_place():
    document = '<img title="Hi there" alt="Hi">'

    assert apply_translations(document, {"Hi": "Hej"}) == '<img title="Hej there" alt="Hej">'


def test_urls_and_classes_are_never_rewritten():
    document = '<a href="/about" class="about">about</a>'

    assert apply_translations(document, {"about": "om"}) == '<a href="/about" class="about">om</a>'


def test_fragment_spanning_a_tag_boundary_is_left_alone():
    result = MarkupTranslator().translate('<img alt="Welcome">Hi', {'Welcome">Hi': "Hej"})

    assert result.html == '<img alt="Welcome">Hi'
    assert result.unmatched == ['Welcome">Hi']


def test_quoted_translation_is_kept_out_of_attribute_values():
    document = '<img alt="Welcome"><p>Welcome</p>'

    assert (
        apply_translations(document, {"Welcome": 'Say "hi"'})
        == '<img alt="Welcome"><p>Say "hi"</p>'
    )


def test_replacement_inside_attribute_is_locked():
    document = '<img alt="Good morning">'
    mapping = {"Good morning": "God morgen, Good", "Good": "God"}

    assert apply_translations(document, mapping) == '<img alt="God morgen, Good">'


def test_restored_anchor_translation_is_stable():
    document = '<p><a href="/x" class="btn w-button" target="_blank">Original</a></p>'
    mapping = {'<a href="/x">Original</a>': '<a href="/x">Oversat</a>'}
    once = apply_translations(document, mapping)

    assert apply_translations(once, mapping) == once


def test_tolerant_translation_embedding_its_source_is_stable():
    document = '<p><a class="btn w-button" href="/x" target="_blank">Go</a></p>'
    mapping = {'<a href="/x">Go</a>': '<a href="/x">Go</a> now'}

    once = apply_translations(document, mapping)

    assert once == '<p><a href="/x" target="_blank" class="btn w-button">Go</a> now</p>'
    assert apply_translations(once, mapping) == once
