from ghost_librarian.ingestion.normalization import normalize_text


def test_normalize_text_strips_controls_and_collapses_spaces() -> None:
    assert normalize_text("Hello  \x07 World\t\ttab") == "Hello World tab"


def test_normalize_text_keeps_line_structure_and_case() -> None:
    text = "  # Heading  \n\nBody Line one\n   Body line two   \n"
    assert normalize_text(text) == "# Heading\n\nBody Line one\nBody line two"


def test_normalize_text_applies_nfkc() -> None:
    assert normalize_text("ﬁle №1") == "file No1"
