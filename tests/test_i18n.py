import pytest

from lingress.i18n import (
    Bundle,
    EmptyBundleError,
    LocalizationContext,
    MessageNotFoundError,
    canonical_tag,
    load_bundle,
    localize_status,
    parse_accept_language,
)
from lingress.providers import MappingFileProvider, noop_file_provider

EN = b"""
status-message:
  default: Something went wrong
  404: Nothing here
greeting: Hello
plural:
  one: One item
  other: Many items
"""

DE = b"""
greeting: Hallo
"""


@pytest.fixture
def bundle():
    provider = MappingFileProvider(
        {"en.yaml": EN, "de.yml": DE, "readme.txt": b"ignored", "sub/fr.yaml": b"greeting: Salut"}
    )
    return load_bundle(provider)


def test_load_bundle_reads_yaml_languages(bundle):
    assert bundle.languages == ["de", "en"]


def test_load_bundle_without_files_raises():
    with pytest.raises(EmptyBundleError):
        load_bundle(MappingFileProvider({"notes.txt": b"x"}))


def test_load_bundle_unreadable_provider_raises():
    with pytest.raises(OSError):
        load_bundle(noop_file_provider())


def test_load_bundle_invalid_yaml_raises():
    with pytest.raises(ValueError):
        load_bundle(MappingFileProvider({"en.yaml": b"- just\n- a list\n"}))


def test_language_taken_from_last_name_part():
    loaded = load_bundle(MappingFileProvider({"active.de.yaml": DE}))
    assert loaded.localize("de", "greeting") == ("Hallo", "de")


def test_localize_prefers_accepted_language(bundle):
    assert bundle.localize("de-DE,en;q=0.5", "greeting") == ("Hallo", "de")


def test_localize_falls_back_to_default_language(bundle):
    assert bundle.localize("de", "status-message.404") == ("Nothing here", "en")


def test_localize_unknown_message_raises(bundle):
    with pytest.raises(MessageNotFoundError):
        bundle.localize("de", "missing")


def test_plural_message_uses_other_form(bundle):
    assert bundle.localize("", "plural")[0] == "Many items"


def test_context_message_and_language(bundle):
    lc = LocalizationContext(bundle, "de")
    assert lc.message("greeting") == "Hallo"
    assert lc.lang_by("greeting") == "de"


def test_message_or_default_uses_fallback_id(bundle):
    lc = LocalizationContext(bundle, "de")
    assert lc.message_or_default("greeting", "missing") == "Hallo"
    assert lc.lang_by("missing") == "en-US"


def test_fallback_id_gives_undefined_language(bundle):
    lc = LocalizationContext(bundle, "de")
    assert lc._message_or_default("greeting", "missing")[1] == "und"


def test_unknown_message_without_fallback_is_empty(bundle):
    lc = LocalizationContext(bundle, "")
    assert lc.message("missing") == ""


def test_localize_status(bundle):
    lc = LocalizationContext(bundle, "de")
    assert localize_status(404, lc) == "Nothing here"
    assert localize_status(500, lc) == "Something went wrong"


def test_parse_accept_language_orders_by_quality():
    assert parse_accept_language("de;q=0.5, fr, en-us;q=0.8, *, it;q=0") == ["fr", "en-US", "de"]


def test_canonical_tag_rejects_garbage():
    with pytest.raises(ValueError):
        canonical_tag("not a tag!")


def test_add_messages_flattens_nested_ids():
    b = Bundle()
    b.add_messages("EN", {"a": {"b": "text"}})
    assert b.localize("en", "a.b") == ("text", "en")