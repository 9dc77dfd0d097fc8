"""Unit tests for the fpdf2 document renderer."""

import pytest

from labforms.core.exceptions import RenderError
from labforms.schemas.documents import DocumentKind
from labforms.services.documents.pdf_renderer import PDFDocumentRenderer


class TestPDFDocumentRenderer:
    """Tests for PDFDocumentRenderer templates."""

    def test_renders_service_form(self, render_inputs):
        service_form, _ = render_inputs

        content = PDFDocumentRenderer().render(DocumentKind.SERVICE_FORM, service_form)

        assert content.startswith(b"%PDF")
        assert len(content) > 1000

    def test_renders_working_area_agreement(self, render_inputs):
        _, working_area = render_inputs

        content = PDFDocumentRenderer().render(DocumentKind.WORKING_AREA_AGREEMENT, working_area)

        assert content.startswith(b"%PDF")

    def test_non_latin_text_is_replaced_not_rejected(self, render_inputs):
        service_form, _ = render_inputs
        service_form = service_form.model_copy(
            update={"customer": service_form.customer.model_copy(update={"name": "Łukasz 王"})}
        )

        content = PDFDocumentRenderer().render(DocumentKind.SERVICE_FORM, service_form)

        assert content.startswith(b"%PDF")

    def test_mismatched_input_raises_render_error(self, render_inputs):
        service_form, _ = render_inputs

        with pytest.raises(RenderError):
            PDFDocumentRenderer().render(DocumentKind.WORKING_AREA_AGREEMENT, service_form)
