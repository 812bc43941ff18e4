# main.py

"""Streamlit web UI for the clinical PHI de-identification engine.

Paste a clinical document to see what would leave the machine, then paste
the language model's answer to restore the original identifiers into it.
"""

import asyncio
import logging

import streamlit as st

from deid.logging_config import configure_logging
from deid.logic.reidentify import unresolved_placeholders
from deid.service.config import settings
from deid.service.pipeline import deidentify, reidentify, summarize_redactions

configure_logging(settings.log_level, settings.log_json)

logger = logging.getLogger(__name__)


def _ledger_rows(result, reveal: bool):
    return [
        {
            "category": r.category,
            "replacement": r.replacement,
            "start": r.start,
            "end": r.end,
            "rule": r.rule_name,
            "original": r.original if reveal else "•" * min(len(r.original), 12),
        }
        for r in result.redactions
    ]


def main():
    """Run the Streamlit application UI.

    The left column de-identifies pasted text; the right column restores
    identifiers into model output using the ledger of the last run, kept
    in the session state.
    """
    st.set_page_config(
        layout="wide", page_title="Clinical PHI De-identification", page_icon="🛡️"
    )

    st.title("Clinical PHI De-identification")
    st.markdown(
        "Strip Protected Health Information before text is sent to an external "
        "AI provider, then restore it into the provider's output."
    )
    st.markdown("---")

    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Input Clinical Text")
        text_input = st.text_area(
            "Source Document",
            height=320,
            placeholder="Paste clinical document text here...",
        )

        if st.button("De-identify", type="primary"):
            if not text_input or not text_input.strip():
                st.warning("Please enter text to process.")
                logger.warning("De-identification attempted with empty input")

            else:
                try:
                    with st.spinner("Analyzing document..."):
                        logger.info(f"Processing document of length: {len(text_input)}")
                        result = asyncio.run(deidentify(text_input))

                    st.session_state["deid_result"] = result
                    logger.info(
                        f"De-identification successful: {len(result.redactions)} redactions",
                        extra={"text_length": len(text_input)},
                    )

                except Exception:
                    st.error("An unexpected error occurred during de-identification.")
                    logger.error(
                        "Unexpected error in main application loop",
                        exc_info=True,
                        extra={"text_length": len(text_input)},
                    )

        result = st.session_state.get("deid_result")
        if result is not None:
            st.text_area("De-identified Document", value=result.text, height=320)
            st.success(f"Redacted: {summarize_redactions(result.redactions)}")

            reveal = st.checkbox("Show original values", value=False)
            st.dataframe(_ledger_rows(result, reveal), use_container_width=True)

    with col2:
        st.subheader("AI Output")
        ai_output = st.text_area(
            "Model Response",
            height=320,
            placeholder="Paste the model's response containing placeholders...",
        )

        if st.button("Re-identify"):
            result = st.session_state.get("deid_result")
            if result is None:
                st.warning("De-identify a document first; its ledger is required.")
            elif not ai_output.strip():
                st.warning("Please paste the model output to restore.")
            else:
                restored = reidentify(ai_output, result.redactions)
                st.text_area("Restored Output", value=restored, height=320)

                leftover = unresolved_placeholders(restored)
                if leftover:
                    st.info(
                        "Left in place (no recorded value): "
                        + ", ".join(sorted(set(leftover)))
                    )

    with st.sidebar:
        st.header("About")
        st.markdown("""
        Identifiers removed before text leaves this process:

        - **Names** (patients, providers, family members, narrative mentions)
        - **Dates** (dates of birth, service dates, ages of 90 and over)
        - **Contact Information** (phone, fax, email, addresses)
        - **Record Numbers** (MRN, SSN, account, license numbers)
        - **Facilities, Locations and Organizations**

        Re-identification is best effort: when the model reorders or drops
        content, repeated placeholders are filled from the recorded values
        in order, wrapping around.
        """)

        st.header("Status")
        st.success(
            "Entity recognition enabled" if settings.ner_enabled else "Regex only"
        )


if __name__ == "__main__":
    main()
