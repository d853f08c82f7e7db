"""Main Streamlit application for LawBot.

This module provides the chat interface for asking questions about Indian
statutes (IPC, BNS, BSA, CrPC) and an admin page for indexing the dataset
and uploading additional documents.
"""

import logging

import streamlit as st
from dotenv import load_dotenv

from lawbot.config import Settings, configure_logging
from lawbot.errors import ConfigurationError, IngestionInProgress, InvalidInput, LawBotError
from lawbot.models import ChatResult, HeadingBlock, ListBlock
from lawbot.rag.formatter import parse_assistant_content
from lawbot.service import LegalAssistant, error_payload

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Namaste! I am your Indian legal assistant. Ask me about criminal law, procedure, "
    "evidence, or specific sections under IPC, BNS, BSA, or CrPC."
)


@st.cache_resource
def get_settings() -> Settings:
    """Load and cache application settings.

    Returns:
        Settings instance loaded from environment variables.
    """
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings)
    return settings


@st.cache_resource
def get_assistant(_settings: Settings) -> LegalAssistant:
    """One assistant per process so the index readiness check runs once."""
    return LegalAssistant(_settings)


def init_state() -> None:
    """Initialize Streamlit session state variables."""
    if "messages" not in st.session_state:
        st.session_state["messages"] = [
            {"role": "assistant", "content": WELCOME_MESSAGE, "sources": []}
        ]


def render_answer(text: str) -> None:
    for block in parse_assistant_content(text):
        if isinstance(block, HeadingBlock):
            st.markdown(f"#### {block.text}")
        elif isinstance(block, ListBlock):
            st.markdown("\n".join(f"- {item}" for item in block.items))
        else:
            st.markdown(block.text)


def render_sources(sources: list) -> None:
    if not sources:
        return
    with st.expander(f"Sources ({len(sources)})"):
        for src in sources:
            label = " - ".join(
                p for p in (src["act"], src.get("section") and f"Section {src['section']}", src.get("title")) if p
            )
            st.markdown(f"**{label}**")
            st.caption(src["snippet"])


def chat_page(assistant: LegalAssistant, settings: Settings) -> None:
    st.title("LawBot")
    st.caption("Indian legal assistant • IPC, BNS, BSA, CrPC • Powered by watsonx.ai")

    for message in st.session_state["messages"]:
        with st.chat_message(message["role"]):
            if message["role"] == "assistant":
                render_answer(message["content"])
                render_sources(message.get("sources", []))
            else:
                st.markdown(message["content"])

    question = st.chat_input("Ask about a section, offence or procedure...")
    if not question:
        return

    st.session_state["messages"].append({"role": "user", "content": question, "sources": []})
    with st.chat_message("user"):
        st.markdown(question)

    with st.chat_message("assistant"):
        with st.spinner("Searching the statutes..."):
            try:
                result: ChatResult = assistant.answer_legal_question(question)
            except LawBotError as e:
                logger.error(f"Request failed: {e}")
                payload = error_payload(e, settings)
                st.error(payload["error"])
                if "details" in payload:
                    st.caption(payload["details"])
                return
        render_answer(result.answer)
        sources = [s.model_dump() for s in result.sources]
        render_sources(sources)

    st.session_state["messages"].append(
        {"role": "assistant", "content": result.answer, "sources": sources}
    )


def admin_page(assistant: LegalAssistant) -> None:
    st.title("Admin")

    st.subheader("Index status")
    if st.button("Refresh status"):
        st.session_state.pop("index_status", None)
    if "index_status" not in st.session_state:
        st.session_state["index_status"] = assistant.index_status()
    st.json(st.session_state["index_status"])

    with st.expander("Health check"):
        st.json(assistant.health().model_dump())

    st.subheader("Index legal dataset")
    clear_existing = st.checkbox("Clear existing vectors first")
    if st.button("Index dataset", type="primary"):
        with st.spinner("Indexing documents, this can take a few minutes..."):
            try:
                report = assistant.run_ingestion(clear_existing=clear_existing)
            except (ConfigurationError, IngestionInProgress, InvalidInput) as e:
                st.error(str(e))
            except LawBotError as e:
                logger.error(f"Indexing failed: {e}")
                st.error(f"Indexing failed: {e}")
            else:
                if report.partial:
                    st.warning(f"Indexing completed with {len(report.errors)} error(s)")
                    for err in report.errors:
                        st.caption(err)
                else:
                    st.success("Indexing completed")
                st.json(report.to_summary())
                if report.dropped_files:
                    st.info(f"{len(report.dropped_files)} JSON file(s) skipped by MAX_JSON_FILES")
                st.session_state.pop("index_status", None)

    st.subheader("Upload documents")
    uploaded_files = st.file_uploader(
        "Text or PDF files to add to the index",
        type=["txt", "md", "pdf"],
        accept_multiple_files=True,
    )
    if uploaded_files and st.button(f"Upload {len(uploaded_files)} file(s)"):
        files = [(f.name, f.getvalue()) for f in uploaded_files]
        with st.spinner(f"Processing {len(files)} file(s)..."):
            try:
                report = assistant.upload_files(files)
            except LawBotError as e:
                st.error(f"Failed to upload documents: {e}")
            else:
                st.success(f"Uploaded {report.uploaded_chunks} chunk(s) from {report.file_count} file(s)")
                for err in report.errors:
                    st.caption(err)
                st.session_state.pop("index_status", None)


def main() -> None:
    """Main entry point for the Streamlit application."""
    st.set_page_config(page_title="LawBot | Indian Legal Assistant", layout="wide")

    settings = get_settings()
    assistant = get_assistant(settings)
    init_state()

    st.sidebar.markdown("### Navigation")
    page = st.sidebar.radio("Page", ["Chat", "Admin"], label_visibility="collapsed")
    st.sidebar.divider()
    st.sidebar.caption(
        "LawBot answers from indexed statute text only. It is not a substitute for formal legal advice."
    )

    if page == "Chat":
        chat_page(assistant, settings)
    else:
        admin_page(assistant)


if __name__ == "__main__":
    main()
