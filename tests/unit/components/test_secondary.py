"""
Unit tests for secondary indexes.
"""

import pytest
from gedtree.config import Config
from gedtree.diagnostics import DiagnosticKind, KeyDerivationError
from gedtree.document import Document, Mode
from gedtree.secondary import SecondaryIndex, build_index

TEXT = (
    "0 HEAD\n"
    "1 CHAR UTF-8\n"
    "0 @I1@ INDI\n"
    "1 NAME John /Smith/\n"
    "1 SEX M\n"
    "0 @I2@ INDI\n"
    "1 NAME John /Smith/\n"
    "0 @I3@ INDI\n"
    "1 NAME Mary /Jones/\n"
    "1 SEX F\n"
    "0 @F1@ FAM\n"
    "1 HUSB @I1@\n"
    "0 TRLR\n"
)


@pytest.fixture(params=[False, True], ids=["in-core", "out-of-core"])
def document(request, tmp_path):
    path = tmp_path / "people.ged"
    path.write_text(TEXT)
    mode = Mode(out_of_core=request.param, write_index=False, read_index=False)
    with Document(path, mode, config=Config()) as doc:
        yield doc


class TestBuildIndex:
    def test_default_key_is_field_data(self, document):
        index = build_index(document, "NAME")
        assert isinstance(index, SecondaryIndex)
        assert sorted(index) == ["John /Smith/", "Mary /Jones/"]
        assert index["Mary /Jones/"].key == "I3"

    def test_duplicate_first_wins(self, document):
        index = build_index(document, "NAME")
        assert index["John /Smith/"].key == "I1"
        [diagnostic] = index.log.of_kind(DiagnosticKind.DUPLICATE_KEY)
        assert diagnostic.record == 3
        assert "I2" in diagnostic.message
        assert "record #2 (I1)" in diagnostic.message

    def test_records_without_the_field_are_skipped(self, document):
        index = build_index(document, "SEX")
        assert dict((k, v.key) for k, v in index.items()) == {"M": "I1", "F": "I3"}
        assert len(index.log) == 0

    def test_custom_key_function(self, document):
        index = build_index(document, "NAME", lambda field: field.data.split("/")[1])
        assert sorted(index) == ["Jones", "Smith"]

    def test_none_skips_silently(self, document):
        index = build_index(document, "NAME", lambda field: None if "Mary" in field.data else field.data)
        assert list(index) == ["John /Smith/"]
        assert index.log.of_kind(DiagnosticKind.NON_STRING_KEY) == []

    def test_non_string_key_is_logged_and_skipped(self, document):
        index = build_index(document, "NAME", lambda field: len(field.data))
        assert len(index) == 0
        assert len(index.log.of_kind(DiagnosticKind.NON_STRING_KEY)) == 3

    def test_failing_key_function_aborts(self, document):
        def explode(field):
            raise ValueError("no good")

        with pytest.raises(KeyDerivationError, match="record #2") as excinfo:
            build_index(document, "NAME", explode)
        assert excinfo.value.log.of_kind(DiagnosticKind.KEY_DERIVATION)
        assert isinstance(excinfo.value.__cause__, ValueError)

    def test_unknown_tag_gives_empty_index(self, document):
        assert len(build_index(document, "DEAT")) == 0

    def test_document_method(self, document):
        index = document.build_index("NAME")
        assert "Mary /Jones/" in index
        assert index.tag == "NAME"

    def test_document_method_shares_translations(self, document):
        document.messages.translate["Duplicate value for %s %r: record #%d (%s), record #%d (%s)"] = (
            "dup %s %r #%d %s #%d %s"
        )
        index = document.build_index("NAME")
        assert index.log.entries[0].message == "dup NAME 'John /Smith/' #2 I1 #3 I2"
