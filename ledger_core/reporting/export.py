import csv
import io
import logging
from typing import Union
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.styles import getSampleStyleSheet
from ledger_core.models.reports import TrialBalanceResult

logger = logging.getLogger(__name__)

HEADERS = [
    "Account Code",
    "Account Name",
    "Account Type",
    "Opening Balance",
    "Period Debits",
    "Period Credits",
    "Closing Balance",
]


def _rows(tb: TrialBalanceResult):
    for a in tb.accounts:
        yield [
            a.code,
            a.name,
            a.account_type.value,
            f"{a.opening_balance:.2f}",
            f"{a.period_debits:.2f}",
            f"{a.period_credits:.2f}",
            f"{a.closing_balance:.2f}",
        ]


def export_trial_balance_csv(tb: TrialBalanceResult) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(HEADERS)
    writer.writerows(_rows(tb))
    return buffer.getvalue()


def export_trial_balance_pdf(tb: TrialBalanceResult) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4))
    styles = getSampleStyleSheet()
    story = []

    story.append(Paragraph(f"Trial Balance: {tb.period_start} to {tb.period_end}", styles['Title']))
    story.append(Paragraph(f"Currency: {tb.currency}", styles['Normal']))
    story.append(Spacer(1, 12))

    data = [HEADERS] + list(_rows(tb))
    data.append(["", "Total", "", "", "", f"DR {tb.totals.total_debits:.2f}", f"CR {tb.totals.total_credits:.2f}"])

    t = Table(data, colWidths=[70, 180, 70, 90, 90, 90, 90], repeatRows=1)
    t.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (2, -1), 'LEFT'),
        ('ALIGN', (3, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
    ]))
    story.append(t)

    status = "Balanced" if tb.is_balanced else "NOT BALANCED"
    story.append(Spacer(1, 12))
    story.append(Paragraph(f"Status: {status}. Net income: {tb.totals.net_income:.2f}", styles['Normal']))
    doc.build(story)
    return buffer.getvalue()


def export_trial_balance(tb: TrialBalanceResult, fmt: str) -> Union[str, bytes]:
    """CSV returns text, PDF returns bytes."""
    fmt = fmt.upper()
    if fmt == "CSV":
        return export_trial_balance_csv(tb)
    if fmt == "PDF":
        return export_trial_balance_pdf(tb)
    logger.error(f"Unsupported export format: {fmt}")
    raise ValueError(f"Unsupported export format: {fmt}")
