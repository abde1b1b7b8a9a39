# claimdesk/utils/approval_pdf.py

from __future__ import annotations

import io
import os
from datetime import date, datetime

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle

from claimdesk.config import company_context
from claimdesk.errors import ConflictError, DependencyError
from claimdesk.models import ClaimStatus
from claimdesk.utils.clock import business_now, to_business_time

# (regular, bold) TrueType files with Thai glyphs, tried in order when
# PDF_FONT_PATH is not configured.
FONT_CANDIDATES = (
    ("/usr/share/fonts/truetype/noto/NotoSansThai-Regular.ttf", "/usr/share/fonts/truetype/noto/NotoSansThai-Bold.ttf"),
    ("/usr/share/fonts/truetype/tlwg/Loma.ttf", "/usr/share/fonts/truetype/tlwg/Loma-Bold.ttf"),
    ("/usr/share/fonts/truetype/tlwg/Garuda.ttf", "/usr/share/fonts/truetype/tlwg/Garuda-Bold.ttf"),
    ("/usr/share/fonts/truetype/thai-tlwg/Garuda.ttf", "/usr/share/fonts/truetype/thai-tlwg/Garuda-Bold.ttf"),
)

# path -> registered reportlab font name
_registered_fonts: dict = {}


# =========================================================
# Fonts
# =========================================================
def _register_ttf(path: str) -> str:
    name = _registered_fonts.get(path)
    if name:
        return name

    name = "Claimdesk-" + os.path.splitext(os.path.basename(path))[0]
    try:
        pdfmetrics.registerFont(TTFont(name, path))
    except (OSError, TTFError) as exc:
        current_app.logger.exception("Could not load PDF font %s", path)
        raise DependencyError("The approval document font could not be loaded.") from exc

    _registered_fonts[path] = name
    return name


def resolve_fonts() -> tuple[str, str]:
    """
    (regular, bold) font names for the approval letter.

    A configured PDF_FONT_PATH wins; otherwise the first installed candidate
    is used. Helvetica is the last resort and has no Thai glyphs.
    """
    regular = current_app.config.get("PDF_FONT_PATH")
    bold = current_app.config.get("PDF_FONT_BOLD_PATH")

    if not regular:
        for reg_path, bold_path in FONT_CANDIDATES:
            if os.path.exists(reg_path):
                regular = reg_path
                bold = bold_path if os.path.exists(bold_path) else None
                break

    if not regular:
        return "Helvetica", "Helvetica-Bold"

    reg_name = _register_ttf(regular)
    bold_name = _register_ttf(bold) if bold else reg_name
    return reg_name, bold_name


def missing_glyphs(font_name: str, text: str | None) -> set:
    """Characters of ``text`` the font cannot draw."""
    if not text:
        return set()
    font = pdfmetrics.getFont(font_name)
    if isinstance(font, TTFont):
        covered = font.face.charToGlyph
        return {ch for ch in text if not ch.isspace() and ord(ch) not in covered}

    # Standard Type 1 fonts only carry the WinAnsi set.
    out = set()
    for ch in text:
        try:
            ch.encode("cp1252")
        except UnicodeEncodeError:
            out.add(ch)
    return out


# =========================================================
# Formatting
# =========================================================
def _fmt_date(d):
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return d.strftime("%d %B %Y")
    return str(d)


def _money(v, currency="THB"):
    if v is None:
        return "-"
    return f"{currency} {float(v):,.2f}"


def _wrapped(c, text, x, y, width, font, size=10, leading=13, max_lines=8):
    """Draw wrapped text, returns the y below the last line."""
    c.setFont(font, size)
    lines = simpleSplit(text or "-", font, size, width)[:max_lines]
    for line in lines:
        c.drawString(x, y, line)
        y -= leading
    return y


# =========================================================
# Render
# =========================================================
def render_approval_pdf(claim) -> bytes:
    """
    Render the approval letter for an APPROVED claim (no DB writes).
    Returns PDF bytes.
    """
    if ClaimStatus(claim.status) != ClaimStatus.APPROVED:
        raise ConflictError("Approval documents are only available for approved claims.")

    company = company_context()
    font, font_bold = resolve_fonts()

    branch = getattr(claim, "branch", None)
    approver = getattr(claim, "approver", None)
    approver_name = (approver.full_name if approver else None) or company["DEFAULT_APPROVER_NAME"]

    dropped = set()
    for text in (
        claim.customer_name,
        claim.car_model,
        claim.car_register,
        claim.vin_no,
        claim.project_type,
        claim.claim_detail,
        claim.approval_note,
        branch.name if branch else None,
        branch.address if branch else None,
        approver_name,
    ):
        dropped |= missing_glyphs(font, text)
    if dropped:
        current_app.logger.warning(
            "Approval PDF for %s: font %s cannot draw %r; set PDF_FONT_PATH to a Thai-capable TTF",
            claim.claim_no,
            font,
            "".join(sorted(dropped)),
        )

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.setTitle(f"Claim approval {claim.claim_no}")
    width, height = A4

    NAVY = colors.HexColor("#1e3a8a")
    BLUE = colors.HexColor("#3b82f6")
    GRAY = colors.HexColor("#6b7280")
    DARK = colors.HexColor("#111827")
    NOTE_BG = colors.HexColor("#fef9c3")
    NOTE_FG = colors.HexColor("#854d0e")

    left = 20 * mm
    right = width - 20 * mm

    # --- Header bar ---
    c.setFillColor(NAVY)
    c.rect(0, height - 28 * mm, width, 28 * mm, stroke=0, fill=1)

    c.setFillColor(colors.white)
    c.setFont(font_bold, 15)
    c.drawString(left, height - 14 * mm, company["COMPANY_NAME"])
    c.setFont(font, 9)
    c.drawString(left, height - 20 * mm, company["COMPANY_ADDRESS"])
    c.drawString(left, height - 24.5 * mm, company["COMPANY_TAGLINE"])

    c.setFont(font_bold, 12)
    c.drawRightString(right, height - 14 * mm, "CLAIM APPROVAL")
    c.setFont(font, 9)
    c.drawRightString(right, height - 20 * mm, claim.claim_no)

    # --- Date + addressee ---
    y = height - 40 * mm
    c.setFillColor(DARK)
    c.setFont(font, 10)
    c.drawRightString(right, y, f"Date: {_fmt_date(to_business_time(claim.approved_date))}")

    y -= 10 * mm
    c.drawString(left, y, "Subject: Approval of service claim")
    y -= 6 * mm
    c.drawString(left, y, f"To: Manager, {branch.name if branch else 'Service Center'}")
    if branch is not None and branch.address:
        y -= 5 * mm
        c.setFillColor(GRAY)
        c.drawString(left + 7 * mm, y, branch.address[:90])
        c.setFillColor(DARK)

    y -= 10 * mm
    intro = (
        f"With reference to claim {claim.claim_no} submitted by your service center, "
        "the company has reviewed the request and approves it as detailed below."
    )
    y = _wrapped(c, intro, left, y, right - left, font)

    # --- Vehicle / claim details ---
    y -= 4 * mm
    data = [
        ["Claim No", claim.claim_no],
        ["Customer", claim.customer_name],
        ["Car Model", claim.car_model],
        ["Car Register", claim.car_register],
        ["VIN", claim.vin_no or "-"],
        ["Project Type", claim.project_type or "-"],
    ]
    if claim.is_check_mileage:
        data.append(["Mileage check", f"{claim.mileage:,} km (last {claim.last_mileage:,} km)"])
    else:
        data.append(["Mileage check", "Not required"])
    data.append(["Approved Amount", _money(claim.amount)])

    table = Table(data, colWidths=[45 * mm, right - left - 45 * mm], hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0, 0), (-1, -1), font),
        ("FONTNAME", (0, 0), (0, -1), font_bold),
        ("FONTNAME", (1, -1), (1, -1), font_bold),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("TEXTCOLOR", (0, 0), (-1, -1), DARK),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e5e7eb")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("PADDING", (0, 0), (-1, -1), 5),
    ]))
    _, th = table.wrapOn(c, right - left, height)
    table.drawOn(c, left, y - th)
    y = y - th - 8 * mm

    # --- Repair detail ---
    c.setStrokeColor(BLUE)
    c.setLineWidth(2)
    c.line(left, y + 4 * mm, left, y - 2 * mm)
    c.setFont(font_bold, 11)
    c.drawString(left + 3 * mm, y, "Repair detail")
    y -= 7 * mm
    y = _wrapped(c, claim.claim_detail, left + 3 * mm, y, right - left - 3 * mm, font)

    # --- Approval note ---
    note = claim.approval_note
    if note:
        y -= 4 * mm
        lines = simpleSplit(note, font, 9, right - left - 8 * mm)[:4]
        box_h = (len(lines) + 1) * 12 + 6
        c.setFillColor(NOTE_BG)
        c.rect(left, y - box_h + 10, right - left, box_h, stroke=0, fill=1)
        c.setFillColor(NOTE_FG)
        c.setFont(font_bold, 9)
        c.drawString(left + 4 * mm, y, "Note")
        c.setFont(font, 9)
        ly = y - 12
        for line in lines:
            c.drawString(left + 4 * mm, ly, line)
            ly -= 12
        y = y - box_h - 4 * mm
        c.setFillColor(DARK)

    # --- Signature ---
    y -= 14 * mm
    c.setFont(font, 10)
    c.drawRightString(right, y, "Yours sincerely,")
    y -= 18 * mm
    c.drawRightString(right, y, f"( {approver_name} )")
    y -= 5 * mm
    c.setFillColor(GRAY)
    c.drawRightString(right, y, company["APPROVER_TITLE"])

    # --- Footer ---
    c.setFillColor(colors.HexColor("#e5e7eb"))
    c.rect(0, 0, width, 12 * mm, stroke=0, fill=1)
    c.setFillColor(colors.HexColor("#374151"))
    c.setFont(font, 8)
    c.drawString(left, 4 * mm, f"{company['COMPANY_NAME']} | {company['COMPANY_PHONE']} | {company['COMPANY_EMAIL']}")
    c.drawRightString(right, 4 * mm, f"Generated: {business_now():%Y-%m-%d}")

    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf
