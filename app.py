"""
Receipt Scanner - Main Entry Point
Streamlit front end for importing, deduplicating, exporting and merging receipts.
"""

import streamlit as st
import sys
import logging
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from receipt_core.config import load_config
from receipt_core.extraction import load_extractor, ExtractionError
from receipt_core.session import ReceiptSession
from receipt_core.storage import BlobStore, ReceiptCache
from ui.components import (
    setup_sidebar, display_upload_section, display_receipts,
    display_duplicates, display_export_section, display_merge_section,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('receipt_scanner.log'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)


def initialize_app():
    """Initialize configuration, the cache and the receipt session."""
    try:
        if 'config' not in st.session_state:
            st.session_state.config = load_config()

        if 'session' not in st.session_state:
            config = st.session_state.config
            store = BlobStore(config.storage_path)
            store.initialize()
            cache = ReceiptCache(store, config)
            session = ReceiptSession(cache)
            session.load_from_cache()
            st.session_state.session = session
            st.session_state.settings = cache.load_settings()

        if 'extractor' not in st.session_state:
            try:
                st.session_state.extractor = load_extractor(st.session_state.config.extractor)
            except ExtractionError as e:
                logger.error(f"Receipt extractor unavailable: {str(e)}")
                st.warning(f"Image analysis disabled: {str(e)}")
                st.session_state.extractor = None

        logger.info("Application initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize application: {str(e)}")
        st.error(f"Failed to initialize application: {str(e)}")
        st.stop()


def main():
    """Main application function."""
    st.set_page_config(
        page_title="Receipt Scanner",
        page_icon="🧾",
        layout="wide",
        initial_sidebar_state="expanded"
    )

    initialize_app()
    config = st.session_state.config
    session = st.session_state.session

    st.title("🧾 Receipt Scanner")
    st.markdown("---")

    setup_sidebar(config, session)

    scan_tab, merge_tab = st.tabs(["Receipts", "Merge"])
    with scan_tab:
        display_upload_section(session, config, st.session_state.extractor)
        st.markdown("---")
        display_duplicates(session)
        display_receipts(session)
        display_export_section(session, config)
    with merge_tab:
        display_merge_section()


if __name__ == "__main__":
    main()
