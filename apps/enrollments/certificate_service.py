import io
import logging
from datetime import datetime

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils.module_loading import import_string
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)


class PDFCertificateRenderer:
    """
    Renders a landscape A4 certificate with reportlab and stores it in
    Django's default storage. ``render`` returns the stored file's URL.
    """

    version = "pdf-1"

    COLORS = {
        "primary": colors.HexColor("#1e3a5f"),  # Deep navy blue
        "secondary": colors.HexColor("#c9a227"),  # Gold accent
        "accent": colors.HexColor("#2563eb"),
        "text_dark": colors.HexColor("#1f2937"),
        "text_medium": colors.HexColor("#4b5563"),
        "text_light": colors.HexColor("#6b7280"),
        "background": colors.HexColor("#fafafa"),
    }

    organisation_name = "Course Marketplace"

    def _centered(self, c, text, y, font="Helvetica", size=12, color="text_medium"):
        c.setFillColor(self.COLORS[color])
        c.setFont(font, size)
        text_width = c.stringWidth(text, font, size)
        c.drawString((self.page_width - text_width) / 2, y, text)
        return text_width

    def _draw_border(self, c):
        """Gold outer frame, navy inner frame and a divider under the title."""
        width, height = self.page_width, self.page_height
        margin = 25 * mm
        inner_margin = 30 * mm

        c.setStrokeColor(self.COLORS["secondary"])
        c.setLineWidth(3)
        c.rect(margin, margin, width - 2 * margin, height - 2 * margin)

        c.setStrokeColor(self.COLORS["primary"])
        c.setLineWidth(1)
        c.rect(inner_margin, inner_margin, width - 2 * inner_margin, height - 2 * inner_margin)

        line_y = height - 85 * mm
        c.setStrokeColor(self.COLORS["secondary"])
        c.setLineWidth(1.5)
        c.line(width / 2 - 80 * mm, line_y, width / 2 + 80 * mm, line_y)

    def _draw_seal(self, c, x, y, radius):
        c.setStrokeColor(self.COLORS["secondary"])
        c.setLineWidth(2)
        c.circle(x, y, radius, stroke=1, fill=0)
        c.setFillColor(self.COLORS["secondary"])
        c.circle(x, y, radius - 8 * mm, stroke=0, fill=1)

    def _draw_labelled_value(self, c, x, y, label, value):
        c.setFillColor(self.COLORS["text_light"])
        c.setFont("Helvetica", 10)
        c.drawString(x, y + 15, label)
        c.setFillColor(self.COLORS["text_dark"])
        c.setFont("Helvetica-Bold", 12)
        c.drawString(x, y, value)

    def build_pdf(
        self,
        student_name: str,
        course_title: str,
        date: datetime,
        instructor_name: str,
        certificate_id: str,
        grade: str,
        score: int | None,
    ) -> bytes:
        buffer = io.BytesIO()
        self.page_width, self.page_height = landscape(A4)
        c = canvas.Canvas(buffer, pagesize=landscape(A4))
        c.setTitle(f"Certificate {certificate_id}")

        c.setFillColor(self.COLORS["background"])
        c.rect(0, 0, self.page_width, self.page_height, fill=1, stroke=0)
        self._draw_border(c)

        top = self.page_height
        self._centered(c, self.organisation_name, top - 55 * mm, "Helvetica-Bold", 14, "primary")
        self._centered(c, "CERTIFICATE", top - 75 * mm, "Helvetica-Bold", 36, "primary")
        self._centered(c, "OF COMPLETION", top - 83 * mm, "Helvetica", 16, "secondary")
        self._centered(c, "This is to certify that", top - 105 * mm)
        self._centered(c, student_name, top - 122 * mm, "Helvetica-Bold", 28, "accent")
        self._centered(c, "has successfully completed the course", top - 142 * mm)
        self._centered(c, course_title, top - 158 * mm, "Helvetica-Bold", 20, "text_dark")

        score_text = f"{score}%" if score is not None else "N/A"
        self._centered(
            c,
            f"Grade: {grade}    Overall score: {score_text}",
            top - 170 * mm,
            "Helvetica",
            12,
            "primary",
        )

        bottom_y = 45 * mm
        self._draw_labelled_value(c, 80 * mm, bottom_y, "Date of Issue", date.strftime("%B %d, %Y"))
        self._draw_labelled_value(c, 150 * mm, bottom_y, "Instructor", instructor_name or "")
        self._draw_seal(c, self.page_width - 120 * mm, bottom_y + 10, 18 * mm)
        self._draw_labelled_value(
            c, self.page_width - 85 * mm, bottom_y, "Certificate ID", certificate_id
        )

        c.showPage()
        c.save()
        return buffer.getvalue()

    def render(
        self,
        student_name: str,
        course_title: str,
        date: datetime,
        instructor_name: str,
        certificate_id: str,
        grade: str,
        score: int | None,
    ) -> str:
        pdf_bytes = self.build_pdf(
            student_name, course_title, date, instructor_name, certificate_id, grade, score
        )
        saved_path = default_storage.save(
            f"certificates/{certificate_id}.pdf", ContentFile(pdf_bytes)
        )
        file_url = default_storage.url(saved_path)
        logger.debug(f"Rendered certificate {certificate_id} to {saved_path}")
        return file_url

    def discard(self, certificate_id: str):
        """Deletes the stored artifact of a certificate that was never persisted."""
        path = f"certificates/{certificate_id}.pdf"
        if default_storage.exists(path):
            default_storage.delete(path)
            logger.debug(f"Discarded certificate artifact {path}")


def get_certificate_renderer():
    """Instantiates the renderer named by the CERTIFICATE_RENDERER setting."""
    renderer_path = getattr(
        settings,
        "CERTIFICATE_RENDERER",
        "apps.enrollments.certificate_service.PDFCertificateRenderer",
    )
    return import_string(renderer_path)()
