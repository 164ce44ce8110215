"""
UI components for the receipt scanner.
Provides the upload, receipt list, duplicates, export and merge sections.
"""

import streamlit as st
import logging
from datetime import datetime
from typing import Optional

import pandas as pd

from receipt_core.config import AppConfig
from receipt_core.export import DataExporter
from receipt_core.extraction import ReceiptExtractor, analyze_batch, analyze_image
from receipt_core.merge import WorkbookMerger, MERGED_FILENAME
from receipt_core.session import ReceiptSession
from receipt_core.settings import export_settings_workbook, parse_settings, default_settings, merge_settings
from receipt_core.versioning import check_workbook, should_warn
from receipt_core.workbook import read_workbook, write_workbook, WorkbookReadError, XLSX_MIME_TYPE

logger = logging.getLogger(__name__)


def setup_sidebar(config: AppConfig, session: ReceiptSession):
    """Setup the sidebar with version info, quick stats and cache controls."""
    with st.sidebar:
        st.header("🧾 Receipt Scanner")
        st.markdown(f"**Version:** {config.version}")

        receipts = session.receipts
        if receipts:
            st.markdown("---")
            st.subheader("📊 Quick Stats")
            st.metric("Receipts", len(receipts))
            st.metric("Items", sum(r.item_count for r in receipts))
            st.metric("Grand Total", f"{sum(r.total for r in receipts):,.2f}")
            st.metric("Duplicates", len(session.duplicates))

        st.markdown("---")
        col1, col2 = st.columns(2)
        with col1:
            if st.button("Clear cache"):
                session.clear_cache()
                st.rerun()
        with col2:
            if st.button("Clear all"):
                session.clear_all()
                st.rerun()

        settings = st.session_state.get("settings") or default_settings(config)
        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        st.download_button(
            "⚙️ Export settings",
            data=write_workbook(export_settings_workbook(settings, config)),
            file_name=f"receipt-scanner-settings-{timestamp}.xlsx",
            mime=XLSX_MIME_TYPE,
        )


def _confirm_version(workbook, config: AppConfig, key: str) -> bool:
    """Show a version warning if needed; True when the file may be used."""
    check = check_workbook(workbook, config)
    if check is None or not should_warn(check, config):
        return True
    st.warning(check.message)
    if not config.version_check.allow_override:
        return False
    return st.checkbox("Import anyway", key=f"confirm-{key}")


def display_upload_section(session: ReceiptSession, config: AppConfig,
                           extractor: Optional[ReceiptExtractor] = None):
    """Upload spreadsheets (and images when an extractor is configured)."""
    st.subheader("📁 Upload")

    spreadsheets = st.file_uploader(
        "Previously exported spreadsheets",
        type=["xlsx"],
        accept_multiple_files=True,
        help="Receipts from these files take priority over analyzed ones",
    )
    exporter = DataExporter(config)
    imported = st.session_state.setdefault("imported_files", set())

    for upload in spreadsheets or []:
        key = f"{upload.name}-{upload.size}"
        if key in imported:
            continue
        try:
            workbook = read_workbook(upload.getvalue())
        except WorkbookReadError as e:
            st.error(f"{upload.name}: {str(e)}")
            continue
        if not _confirm_version(workbook, config, key):
            continue

        receipts = exporter.decode(workbook)
        file_settings = parse_settings(workbook)
        if not file_settings.is_empty():
            current = st.session_state.get("settings") or default_settings(config)
            st.session_state.settings = merge_settings(current, file_settings)
            if session.cache is not None:
                session.cache.save_settings(st.session_state.settings)
        session.add_spreadsheet(receipts)
        imported.add(key)
        st.success(f"✅ {upload.name}: {len(receipts)} receipt(s) imported")

    images = st.file_uploader(
        "Receipt images",
        type=["png", "jpg", "jpeg", "webp"],
        accept_multiple_files=True,
    )
    if extractor is None:
        if images:
            st.info("No AI extractor is configured (set RECEIPT_EXTRACTOR=module:Class); "
                    "image analysis is unavailable.")
        return

    if images and st.button(f"Analyze {len(images)} image(s)"):
        with st.spinner("Analyzing receipts..."):
            results = analyze_batch(extractor, [(i.name, i.getvalue(), i.type) for i in images])
        session.set_batch([r.receipt for r in results])
        if len(results) < len(images):
            st.error(f"{len(images) - len(results)} image(s) could not be analyzed")

    photo = st.camera_input("Or take a photo of a receipt")
    if photo is not None and st.button("Analyze photo"):
        try:
            with st.spinner("Analyzing receipt..."):
                result = analyze_image(extractor, photo.getvalue(), photo.type or "image/jpeg")
        except Exception as e:
            logger.error(f"Photo analysis failed: {str(e)}")
            st.error("Failed to analyze the photo")
            return
        session.set_current(result.receipt)
        st.success(f"✅ {result.receipt.store or 'Receipt'}: {result.receipt.item_count} item(s)")


def display_receipts(session: ReceiptSession):
    """Display the reconciled receipts."""
    receipts = session.receipts
    if not receipts:
        st.info("No receipts yet. Upload a spreadsheet or analyze some images.")
        return

    st.subheader(f"🧾 Receipts ({len(receipts)})")
    for receipt in receipts:
        title = f"{receipt.store or 'Unknown Store'} - {receipt.date or 'Unknown Date'} · {receipt.total:.2f}"
        with st.expander(f"{title} [{receipt.source}]"):
            st.caption(f"ID: {receipt.id}")
            rows = [{
                "Product": p.name,
                "Price": p.price,
                "Quantity": p.effective_quantity,
                "Category": p.category or "N/A",
                "Total": round(p.line_total, 2),
            } for p in receipt.products]
            st.dataframe(pd.DataFrame(rows), use_container_width=True)


def display_duplicates(session: ReceiptSession):
    """List the receipts that lost deduplication."""
    if not session.duplicates:
        return
    with st.expander(f"⚠️ {len(session.duplicates)} duplicate(s) found"):
        for dup in session.duplicates:
            st.write(f"- {dup.store or 'Unknown'} ({dup.source}) → duplicate of `{dup.duplicate_of}`")


def display_export_section(session: ReceiptSession, config: AppConfig):
    """Download the deduplicated receipts as a spreadsheet."""
    if not session.receipts:
        return
    exporter = DataExporter(config)
    settings = st.session_state.get("settings")
    try:
        data = exporter.export_to_excel(session.receipts, settings)
    except Exception as e:
        logger.error(f"Export failed: {e}")
        st.error("Failed to generate Excel file")
        return
    st.download_button(
        "📥 Export to Excel",
        data=data,
        file_name=exporter.get_export_filename(len(session.receipts)),
        mime=XLSX_MIME_TYPE,
    )


def display_merge_section():
    """Merge several exported spreadsheets into one file."""
    st.subheader("🔗 Merge spreadsheets")
    files = st.file_uploader("Spreadsheets to merge", type=["xlsx"],
                             accept_multiple_files=True, key="merge-files")
    if not files or len(files) < 2:
        st.caption("Select at least two files.")
        return
    try:
        merged = WorkbookMerger().merge_files([f.getvalue() for f in files])
    except WorkbookReadError as e:
        st.error(str(e))
        return
    except Exception as e:
        logger.error(f"Merge failed: {str(e)}")
        st.error("Failed to merge the spreadsheets")
        return
    st.download_button("📥 Download merged file", data=merged,
                       file_name=MERGED_FILENAME, mime=XLSX_MIME_TYPE)
