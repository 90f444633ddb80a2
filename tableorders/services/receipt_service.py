"""Receipt and kitchen ticket PDFs."""
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape
from typing import Any, Dict

from reportlab.lib.pagesizes import A4, A6
from reportlab.lib import colors
from reportlab.lib.units import inch, mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from tableorders.models import PartOrder
from tableorders.utils.formatters import money_gbp, percent, datetime_uk


def render_receipt_pdf(receipt: Dict[str, Any], business_info: Dict[str, Any]) -> BytesIO:
    """
    Itemised receipt for a table session.

    receipt is the dict returned by build_receipt(); every amount printed
    here is taken from it, nothing is recomputed.
    """
    symbol = business_info.get('currency_symbol', '£')
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'ReceiptHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    # 1. Business header
    elements.append(Paragraph("RECEIPT", title_style))
    if business_info.get('name'):
        elements.append(Paragraph(f"<b>{business_info['name']}</b>", header_style))
    if business_info.get('address'):
        elements.append(Paragraph(business_info['address'], header_style))
    if business_info.get('phone'):
        elements.append(Paragraph(f"Tel: {business_info['phone']}", header_style))
    elements.append(Spacer(1, 0.3*inch))

    # 2. Session metadata
    info_data = [
        ['Table:', str(receipt['table_number'])],
        ['Session:', f"#{receipt['table_session_id']}"],
        ['Opened:', datetime_uk(receipt['opened_at'])],
        ['Closed:', datetime_uk(receipt['closed_at'])],
    ]
    if receipt.get('customer_name'):
        info_data.append(['Customer:', receipt['customer_name']])
    if receipt.get('payment_method'):
        info_data.append(['Payment:', f"{receipt['payment_method']} ({receipt['payment_status']})"])

    info_table = Table(info_data, colWidths=[2*inch, 3*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Lines
    table_data = [['Item', 'Qty', 'Unit', 'Discount', 'Tax', 'Amount']]
    for line in receipt['lines']:
        discount = ''
        if line['discount_amount']:
            discount = f"{line['discount_label']} ({money_gbp(-line['discount_amount'], symbol)})"
        table_data.append([
            line['name'],
            str(line['quantity']),
            money_gbp(line['unit_price'], symbol),
            discount,
            percent(line['tax_rate']),
            money_gbp(line['subtotal'], symbol),
        ])

    items_table = Table(table_data, colWidths=[2.4*inch, 0.5*inch, 0.9*inch, 1.4*inch, 0.6*inch, 1*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals = receipt['totals']
    summary = [['Subtotal:', money_gbp(totals.subtotal, symbol)]]
    if totals.item_discount_amount:
        summary.append(['Item discounts:', money_gbp(-totals.item_discount_amount, symbol)])
    if totals.session_discount_amount:
        label = receipt.get('session_discount_label') or ''
        summary.append([f'Table discount {label}:', money_gbp(-totals.session_discount_amount, symbol)])
    summary.append(['Tax:', money_gbp(totals.tax, symbol)])

    summary_table = Table(summary, colWidths=[5.7*inch, 1*inch])
    summary_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
    ]))
    elements.append(summary_table)

    total_table = Table([['TOTAL:', money_gbp(totals.total, symbol)]], colWidths=[5.7*inch, 1*inch])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, 0), 'RIGHT'),
        ('ALIGN', (1, 0), (1, 0), 'RIGHT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 14),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor('#E8F8F5')),
        ('BOX', (0, 0), (-1, -1), 2, colors.HexColor('#27AE60')),
    ]))
    elements.append(total_table)
    elements.append(Spacer(1, 0.4*inch))

    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9,
                                  textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    elements.append(Paragraph(f"Thank you for dining with us.<br/>Printed {datetime_uk(datetime.now())}",
                              footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer


def render_kitchen_ticket_pdf(part_order: PartOrder) -> BytesIO:
    """Small-format ticket: table, time and items with instructions, no prices."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A6, rightMargin=5*mm, leftMargin=5*mm,
                            topMargin=5*mm, bottomMargin=5*mm)
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle('TicketTitle', parent=styles['Heading2'], alignment=TA_CENTER,
                                 fontName='Helvetica-Bold', spaceAfter=4)
    note_style = ParagraphStyle('TicketNote', parent=styles['Normal'], fontSize=8,
                                textColor=colors.HexColor('#C0392B'))

    elements = [
        Paragraph(f"TABLE {part_order.table_number}", title_style),
        Paragraph(f"Order #{part_order.id} - {datetime_uk(part_order.created_at)}", styles['Normal']),
        Spacer(1, 4*mm),
    ]

    rows = [['Qty', 'Item']]
    for item in part_order.items:
        rows.append([str(item.quantity), item.name])
        if item.special_instructions:
            rows.append(['', Paragraph(escape(item.special_instructions), note_style)])
    ticket_table = Table(rows, colWidths=[12*mm, 80*mm])
    ticket_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('LINEBELOW', (0, 0), (-1, 0), 0.5, colors.black),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]))
    elements.append(ticket_table)

    if part_order.special_instructions:
        elements.append(Spacer(1, 4*mm))
        elements.append(Paragraph(f"<b>Notes:</b> {escape(part_order.special_instructions)}", note_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
