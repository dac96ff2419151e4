"""
Report rendering (CSV and PDF exports of parcel data).
"""

import csv
import io
from datetime import datetime
from typing import Any, Optional, Sequence, Tuple

from fpdf import FPDF

from backend.app.models.parcel import Parcel
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.user import User
from backend.app.schemas.analytics import DashboardStats

ReportRow = Tuple[Parcel, Optional[User], Optional[User]]

CSV_COLUMNS = [
    ("Tracking Number", lambda p, c, a: p.tracking_number),
    ("Customer Name", lambda p, c, a: c.name if c else "N/A"),
    ("Customer Email", lambda p, c, a: c.email if c else "N/A"),
    ("Agent Name", lambda p, c, a: a.name if a else "Not Assigned"),
    ("Pickup Address", lambda p, c, a: p.pickup_address),
    ("Delivery Address", lambda p, c, a: p.delivery_address),
    ("Status", lambda p, c, a: p.status.value),
    ("Payment Method", lambda p, c, a: p.payment_method.value),
    ("COD Amount", lambda p, c, a: p.cod_amount or 0),
    ("Delivery Charge", lambda p, c, a: p.delivery_charge or 0),
    ("Parcel Size", lambda p, c, a: p.parcel_size.value),
    ("Parcel Type", lambda p, c, a: p.parcel_type.value),
    ("Weight (kg)", lambda p, c, a: p.weight if p.weight is not None else "N/A"),
    ("Created At", lambda p, c, a: _iso(p.created_at)),
    ("Delivered At", lambda p, c, a: _iso(p.delivered_at)),
]


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else "N/A"


def report_filename(extension: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"parcels-report-{int(now.timestamp() * 1000)}.{extension}"


def render_csv(rows: Sequence[ReportRow]) -> str:
    """One line per parcel under a fixed header."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow([title for title, _ in CSV_COLUMNS])
    for parcel, customer, agent in rows:
        writer.writerow([getter(parcel, customer, agent) for _, getter in CSV_COLUMNS])
    return buffer.getvalue()


def _latin1(text: Any) -> str:
    # Core PDF fonts only cover latin-1
    return str(text).encode("latin-1", "replace").decode("latin-1")


def render_pdf(stats: DashboardStats, rows: Sequence[ReportRow]) -> bytes:
    """Summary statistics followed by the most recent parcels."""
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 10, "Courier Management System", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 16)
    pdf.cell(0, 10, "Parcels Report", align="C", new_x="LMARGIN", new_y="NEXT")

    start = stats.date_range.start.date().isoformat() if stats.date_range.start else "-"
    end = stats.date_range.end.date().isoformat() if stats.date_range.end else "-"
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 8, f"Report Period: {start} - {end}", align="C", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(8)

    by_status = stats.by_status
    in_transit = by_status.get(ParcelStatus.PICKED_UP.value, 0) + by_status.get(ParcelStatus.IN_TRANSIT.value, 0)
    summary = [
        f"Total Parcels: {stats.total}",
        f"Delivered: {by_status.get(ParcelStatus.DELIVERED.value, 0)}",
        f"In Transit: {in_transit}",
        f"Failed: {by_status.get(ParcelStatus.FAILED.value, 0)}",
        f"Delivery Rate: {stats.delivery_rate}%",
        f"Total Revenue: {stats.total_revenue:.2f}",
        f"Total COD: {stats.total_cod:.2f}",
    ]

    pdf.set_font("Helvetica", "BU", 14)
    pdf.cell(0, 8, "Summary Statistics", new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    for line in summary:
        pdf.cell(0, 6, line, new_x="LMARGIN", new_y="NEXT")
    pdf.ln(8)

    pdf.set_font("Helvetica", "BU", 14)
    pdf.cell(0, 8, "Recent Parcels", new_x="LMARGIN", new_y="NEXT")

    for index, (parcel, customer, _agent) in enumerate(rows, start=1):
        customer_name = customer.name if customer else "N/A"
        pdf.set_font("Helvetica", "B", 9)
        pdf.cell(
            0, 5, _latin1(f"{index}. {parcel.tracking_number} - {parcel.status.value} - {customer_name}"),
            new_x="LMARGIN", new_y="NEXT"
        )
        pdf.set_font("Helvetica", "", 7)
        pdf.multi_cell(0, 4, _latin1(f"   From: {parcel.pickup_address}"), new_x="LMARGIN", new_y="NEXT")
        pdf.multi_cell(0, 4, _latin1(f"   To: {parcel.delivery_address}"), new_x="LMARGIN", new_y="NEXT")
        pdf.ln(1)

    return bytes(pdf.output())
