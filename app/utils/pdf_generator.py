from io import BytesIO
from decimal import Decimal
import os
import textwrap

from reportlab.pdfgen import canvas
from reportlab.lib.units import mm

# Ticket de 80mm, alto suficiente para varias filas de pagos
PAGE_WIDTH = 72 * mm
PAGE_HEIGHT = 200 * mm

FONT_NORMAL = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_SIZE_S = 8
FONT_SIZE_M = 9
FONT_SIZE_L = 10

BUSINESS_NAME = os.getenv("BUSINESS_NAME", "NetCharge Pro")


def format_idr(amount) -> str:
    """Rupias sin decimales y con punto de miles: Rp 150.000"""
    value = Decimal(amount or 0).quantize(Decimal("1"))
    return "Rp " + f"{value:,.0f}".replace(",", ".")


class InvoiceTicketGenerator:
    def __init__(self, buffer, invoice, customer, payments):
        self.c = canvas.Canvas(buffer, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
        self.invoice = invoice
        self.customer = customer
        self.payments = payments
        self.cursor_y = PAGE_HEIGHT - (5 * mm)
        self.left_margin = 2 * mm
        self.right_margin = PAGE_WIDTH - (2 * mm)

    def _move_down(self, amount):
        self.cursor_y -= amount
        # Nueva página si se acaba el papel
        if self.cursor_y < 10 * mm:
            self.c.showPage()
            self.cursor_y = PAGE_HEIGHT - (5 * mm)

    def _draw_text_center(self, text, font=FONT_NORMAL, size=FONT_SIZE_M):
        self.c.setFont(font, size)
        self.c.drawCentredString(PAGE_WIDTH / 2, self.cursor_y, text)
        self._move_down(size + 2)

    def _draw_text_left(self, text, font=FONT_NORMAL, size=FONT_SIZE_M):
        self.c.setFont(font, size)
        self.c.drawString(self.left_margin, self.cursor_y, text)
        self._move_down(size + 1)

    def _draw_line(self):
        self._move_down(2)
        self.c.setDash(1, 2)
        self.c.line(self.left_margin, self.cursor_y, self.right_margin, self.cursor_y)
        self.c.setDash([])
        self._move_down(5)

    def _draw_row(self, col1, col2, font=FONT_NORMAL, size=FONT_SIZE_M, bold_col2=False):
        self.c.setFont(font, size)
        self.c.drawString(self.left_margin, self.cursor_y, col1)
        if bold_col2: self.c.setFont(FONT_BOLD, size)
        self.c.drawRightString(self.right_margin, self.cursor_y, col2)
        self._move_down(size + 1)

    def generate(self):
        inv = self.invoice

        # Encabezado
        self._draw_text_center(BUSINESS_NAME, FONT_BOLD, FONT_SIZE_L)
        self._draw_text_center("Layanan WiFi", FONT_NORMAL, FONT_SIZE_S)
        self._draw_line()

        self._draw_text_left(f"FACTURA: {inv.invoice_number}", FONT_BOLD)
        if inv.created_at:
            self._draw_text_left(f"FECHA: {inv.created_at.strftime('%d/%m/%Y')}   HORA: {inv.created_at.strftime('%H:%M')}")
        self._draw_text_left(f"ESTADO: {str(inv.status).upper()}")
        self._move_down(5)

        # Cliente
        self._draw_text_left(f"CLIENTE: {self.customer.name if self.customer else '-'}")
        if self.customer:
            self._draw_text_left(f"TELF: {self.customer.phone}", size=FONT_SIZE_S)
            for line in textwrap.wrap(self.customer.address or "", width=40):
                self._draw_text_left(line, size=FONT_SIZE_S)
        self._draw_line()

        # Periodo
        self._draw_row("PERIODO", f"{inv.billing_period_start:%d/%m/%Y} - {inv.billing_period_end:%d/%m/%Y}", size=FONT_SIZE_S)
        self._draw_row("VENCE", f"{inv.due_date:%d/%m/%Y}", size=FONT_SIZE_S)
        for line in textwrap.wrap(inv.description or "", width=40):
            self._draw_text_left(line, size=FONT_SIZE_S)
        self._draw_line()

        # Totales
        amount = Decimal(inv.amount)
        paid = Decimal(inv.paid_amount or 0)
        balance = max(amount - paid, Decimal("0"))

        self._draw_row("MONTO", format_idr(amount), bold_col2=True)
        self._draw_row("PAGADO", format_idr(paid))
        self._draw_row("SALDO", format_idr(balance), FONT_BOLD, FONT_SIZE_L, bold_col2=True)

        # Pagos
        if self.payments:
            self._draw_line()
            self._draw_text_center("PAGOS", FONT_BOLD, FONT_SIZE_M)
            for p in self.payments:
                self._draw_row(f"{p.payment_number} ({p.method})", format_idr(p.amount), size=FONT_SIZE_S)
                self._draw_text_left(f"   {p.status}", size=FONT_SIZE_S)

        self._draw_line()
        self._draw_text_center("TERIMA KASIH", FONT_BOLD)

        self.c.showPage()
        self.c.save()


def generate_invoice_pdf(invoice, customer=None, payments=None):
    """Renderiza la factura como ticket PDF y devuelve el buffer listo para leer."""
    buffer = BytesIO()
    generator = InvoiceTicketGenerator(buffer, invoice, customer, payments or [])
    generator.generate()
    buffer.seek(0)
    return buffer
