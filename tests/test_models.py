"""Tests for the document record model and category derivation."""

import pytest
from pydantic import ValidationError

from facility_docs.models.documents import (
    ALLOWED_CONTENT_TYPES,
    DocumentCategory,
    DocumentIn,
    DocumentUpdate,
    derive_category,
    normalize_tags,
)

EXPECTED_CATEGORIES = {
    "image/jpeg": DocumentCategory.IMAGE,
    "image/png": DocumentCategory.IMAGE,
    "image/gif": DocumentCategory.IMAGE,
    "image/webp": DocumentCategory.IMAGE,
    "application/pdf": DocumentCategory.DOCUMENT,
    "application/msword": DocumentCategory.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentCategory.DOCUMENT,
    "text/plain": DocumentCategory.DOCUMENT,
    "application/vnd.ms-excel": DocumentCategory.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": DocumentCategory.SPREADSHEET,
}


def _record(**overrides):
    data = {
        "storage_url": "https://bucket/documents/a.pdf",
        "storage_id": "documents/a.pdf",
        "original_filename": "a.pdf",
        "content_type": "application/pdf",
        "size_bytes": 10,
    }
    data.update(overrides)
    return data


class TestDeriveCategory:
    def test_covers_every_allowed_type(self):
        assert set(EXPECTED_CATEGORIES) == set(ALLOWED_CONTENT_TYPES)

    @pytest.mark.parametrize("content_type,expected", sorted(EXPECTED_CATEGORIES.items()))
    def test_allow_list(self, content_type, expected):
        assert derive_category(content_type) is expected

    def test_presentation(self):
        assert (
            derive_category("application/vnd.openxmlformats-officedocument.presentationml.presentation")
            is DocumentCategory.PRESENTATION
        )

    def test_image_rule_wins_over_later_rules(self):
        assert derive_category("image/spreadsheet-preview") is DocumentCategory.IMAGE

    def test_unmatched_falls_back_to_document(self):
        assert derive_category("application/zip") is DocumentCategory.DOCUMENT


class TestNormalizeTags:
    def test_comma_string(self):
        assert normalize_tags(" site-a, invoices ,2024") == ["site-a", "invoices", "2024"]

    def test_list_is_trimmed_in_order(self):
        assert normalize_tags([" b", "a "]) == ["b", "a"]

    def test_empty_entries_dropped(self):
        assert normalize_tags("a,, ,b") == ["a", "b"]

    def test_none(self):
        assert normalize_tags(None) == []


class TestDocumentIn:
    def test_trims_strings(self):
        doc = DocumentIn(**_record(original_filename="  a.pdf ", folder=" reports "))
        assert doc.original_filename == "a.pdf"
        assert doc.folder == "reports"

    def test_default_folder(self):
        assert DocumentIn(**_record()).folder == "documents"

    def test_rejects_unknown_content_type(self):
        with pytest.raises(ValidationError):
            DocumentIn(**_record(content_type="application/zip"))

    def test_rejects_negative_size(self):
        with pytest.raises(ValidationError):
            DocumentIn(**_record(size_bytes=-1))

    def test_rejects_long_description(self):
        with pytest.raises(ValidationError):
            DocumentIn(**_record(description="x" * 501))

    def test_rejects_blank_storage_id(self):
        with pytest.raises(ValidationError):
            DocumentIn(**_record(storage_id="   "))

    def test_tags_from_string(self):
        assert DocumentIn(**_record(tags="a, b")).tags == ["a", "b"]


class TestDocumentUpdate:
    def test_storage_identity_not_accepted(self):
        with pytest.raises(ValidationError):
            DocumentUpdate(storage_id="other")

    def test_content_type_checked(self):
        with pytest.raises(ValidationError):
            DocumentUpdate(content_type="video/mp4")
