"""PDF rendering for service forms (TOR) and working area agreements."""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from fpdf import FPDF
from pydantic import BaseModel

from labforms.core.exceptions import RenderError
from labforms.schemas.documents import (
    DocumentKind,
    FacilityConfig,
    ServiceFormRenderInput,
    WorkingAreaRenderInput,
)
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)

FONT = "helvetica"


def _text(value: Optional[object], fallback: str = "N/A") -> str:
    """Core PDF fonts only cover latin-1."""
    if value is None or value == "":
        return fallback
    return str(value).encode("latin-1", "replace").decode("latin-1")


def _amount(value: Decimal) -> str:
    return f"RM {value:,.2f}"


class BaseDocumentRenderer(ABC):
    """Stateless renderer: structured input in, PDF bytes out."""

    @abstractmethod
    def render(self, kind: DocumentKind, data: BaseModel) -> bytes:
        """Render one document.

        Raises:
            RenderError: If the document cannot be produced
        """
        pass


class FacilityPDF(FPDF):
    """FPDF with the facility letterhead and page footer."""

    def __init__(self, facility: FacilityConfig, ref_no: str):
        super().__init__(orientation="P", unit="mm", format="A4")
        self.facility = facility
        self.ref_no = ref_no
        self.set_auto_page_break(auto=True, margin=18)

    def header(self):
        address = self.facility.address
        self.set_font(FONT, "B", 12)
        self.set_text_color(0, 51, 102)
        self.cell(0, 6, _text(address.title), 0, 1, "R")
        self.set_font(FONT, "", 8)
        self.set_text_color(90, 90, 90)
        for line in (address.institute, address.university, address.street, address.city, address.email):
            self.cell(0, 4, _text(line), 0, 1, "R")
        self.ln(4)
        self.set_text_color(0, 0, 0)

    def footer(self):
        self.set_y(-15)
        self.set_font(FONT, "I", 8)
        self.set_text_color(150, 150, 150)
        self.cell(0, 10, f"{_text(self.ref_no)}  |  Page {self.page_no()}/{{nb}}", 0, 0, "C")


class PDFDocumentRenderer(BaseDocumentRenderer):
    """fpdf2 implementation with one template per document kind."""

    def render(self, kind: DocumentKind, data: BaseModel) -> bytes:
        try:
            if kind == DocumentKind.SERVICE_FORM and isinstance(data, ServiceFormRenderInput):
                pdf = self._service_form(data)
            elif kind == DocumentKind.WORKING_AREA_AGREEMENT and isinstance(data, WorkingAreaRenderInput):
                pdf = self._working_area_agreement(data)
            else:
                raise RenderError(f"No template for {kind} with {type(data).__name__}")

            content = bytes(pdf.output())
            LOGGER.debug(f"Rendered {kind.value} ({len(content)} bytes)")
            return content

        except RenderError:
            raise
        except Exception as e:
            LOGGER.error(f"Failed to render {kind}: {str(e)}", exc_info=True)
            raise RenderError(f"Failed to render {kind.value}: {str(e)}", original_error=e)

    def _service_form(self, data: ServiceFormRenderInput) -> FPDF:
        pdf = FacilityPDF(data.facility, data.ref_no)
        pdf.add_page()

        self._title(pdf, "TERMS OF REFERENCE (SERVICE FORM)")
        self._key_values(pdf, [
            ("Ref. No.", data.ref_no),
            ("Date", data.issue_date.isoformat()),
            ("Valid until", data.valid_until.isoformat()),
            ("Booking", data.booking_reference),
        ])
        pdf.ln(3)

        head = data.facility.ikohza_head
        pdf.set_font(FONT, "B", 10)
        pdf.cell(0, 5, _text(head.name), 0, 1)
        pdf.set_font(FONT, "", 9)
        for line in (head.title, head.department, head.institute, head.university, head.address):
            if line:
                pdf.cell(0, 4.5, _text(line), 0, 1)
        pdf.ln(4)

        customer = data.customer
        self._section(pdf, "CUSTOMER")
        self._key_values(pdf, [
            ("Name", customer.name),
            ("Email", customer.email),
            ("Tel", customer.phone),
            ("Address", customer.address),
            ("Category", customer.user_type),
            ("Faculty / Company", customer.faculty or customer.company or customer.company_branch),
            ("Department", customer.department),
            ("iKohza", customer.ikohza),
            ("Supervisor", customer.supervisor_name),
        ])
        pdf.ln(3)

        self._section(pdf, "SERVICES")
        widths = (8, 72, 20, 22, 30, 30)
        self._row(pdf, widths, ("#", "Service", "Qty", "Unit", "Unit price", "Amount"), bold=True)
        for index, item in enumerate(data.line_items, start=1):
            label = f"{item.service_name} ({item.service_code})" if item.service_code else item.service_name
            self._row(pdf, widths, (
                str(index),
                label,
                f"{item.quantity.normalize():f}",
                item.unit,
                _amount(item.unit_price),
                _amount(item.total_price),
            ))
            note = item.sample_name or item.details
            if note:
                pdf.set_font(FONT, "I", 7.5)
                pdf.cell(widths[0], 4, "", 0, 0)
                pdf.cell(sum(widths[1:]), 4, _text(note)[:120], 0, 1)

        pdf.ln(2)
        self._key_values(pdf, [
            ("Subtotal (analysis)", _amount(data.subtotal)),
            ("Total amount", _amount(data.total_amount)),
        ], label_width=150)
        pdf.ln(6)

        staff = data.facility.staff_pic
        pdf.set_font(FONT, "", 9)
        pdf.multi_cell(
            0, 4.5,
            _text(
                "This service form is valid until "
                f"{data.valid_until.isoformat()}. Please sign and return it to "
                f"{staff.full_name} ({staff.email}) before the analysis begins."
            ),
        )
        if data.facility.cc_recipients:
            pdf.ln(2)
            pdf.cell(0, 4.5, _text("cc: " + ", ".join(data.facility.cc_recipients)), 0, 1)
        self._signature_lines(pdf, "Customer", staff.name)
        return pdf

    def _working_area_agreement(self, data: WorkingAreaRenderInput) -> FPDF:
        pdf = FacilityPDF(data.facility, data.ref_no)
        pdf.add_page()
        area = data.working_area
        customer = data.customer

        self._title(pdf, "WORKING AREA AGREEMENT")
        self._key_values(pdf, [
            ("Ref. No.", data.ref_no),
            ("Date", data.issue_date.isoformat()),
            ("Booking", data.booking_reference),
        ])
        pdf.ln(3)

        self._section(pdf, "APPLICANT")
        self._key_values(pdf, [
            ("Name", customer.name),
            ("Faculty / Company", customer.faculty or customer.company or customer.company_branch),
            ("Department", customer.department),
            ("Supervisor", customer.supervisor_name),
        ])
        pdf.ln(3)

        self._section(pdf, "WORKING AREA")
        self._key_values(pdf, [
            ("Start date", area.start_date.isoformat()),
            ("End date", area.end_date.isoformat()),
            ("Duration", area.duration_text),
            ("Purpose", area.purpose),
        ])
        pdf.ln(3)

        if data.facility.facilities:
            self._section(pdf, "FACILITIES PROVIDED")
            pdf.set_font(FONT, "", 9)
            for name in data.facility.facilities:
                pdf.cell(0, 4.5, _text(f"- {name}"), 0, 1)
            pdf.ln(3)

        pdf.set_font(FONT, "", 9)
        pdf.multi_cell(
            0, 4.5,
            _text(
                "The applicant agrees to use the working area only for the purpose stated above, "
                f"to follow the laboratory safety rules of {data.facility.facility_name}, and to "
                "vacate the area at the end of the agreed duration."
            ),
        )
        self._signature_lines(pdf, "Applicant", data.facility.staff_pic.name)
        return pdf

    @staticmethod
    def _title(pdf: FPDF, title: str):
        pdf.set_font(FONT, "B", 14)
        pdf.set_text_color(0, 51, 102)
        pdf.cell(0, 10, title, 0, 1, "C")
        pdf.set_text_color(0, 0, 0)
        pdf.ln(2)

    @staticmethod
    def _section(pdf: FPDF, title: str):
        pdf.set_font(FONT, "B", 10)
        pdf.set_fill_color(230, 236, 245)
        pdf.cell(0, 6, title, 0, 1, "L", True)
        pdf.ln(1)

    @staticmethod
    def _key_values(pdf: FPDF, rows, label_width: float = 40):
        for label, value in rows:
            pdf.set_font(FONT, "B", 9)
            pdf.cell(label_width, 5, _text(label), 0, 0)
            pdf.set_font(FONT, "", 9)
            pdf.cell(0, 5, _text(value), 0, 1)

    @staticmethod
    def _row(pdf: FPDF, widths, values, bold: bool = False):
        pdf.set_font(FONT, "B" if bold else "", 8.5)
        for index, (width, value) in enumerate(zip(widths, values)):
            align = "R" if index >= 4 else "L"
            pdf.cell(width, 6, _text(value, fallback="")[:48], 1, 0, align)
        pdf.ln(6)

    @staticmethod
    def _signature_lines(pdf: FPDF, left_label: str, right_name: str):
        pdf.ln(14)
        y = pdf.get_y()
        pdf.line(15, y, 85, y)
        pdf.line(125, y, 195, y)
        pdf.set_font(FONT, "", 8.5)
        pdf.set_xy(15, y + 1)
        pdf.cell(70, 4.5, _text(f"{left_label} signature & date"), 0, 0)
        pdf.set_xy(125, y + 1)
        pdf.cell(70, 4.5, _text(f"{right_name} (facility)"), 0, 1)
