import sys
import os

# Ensure project root is on sys.path so `import pasvftp` resolves when Streamlit runs
# (Streamlit runs the script from its directory which can make package imports fail)
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import logging
from datetime import datetime

import streamlit as st

from pasvftp.config import ClientConfig, configure_logging
from pasvftp.core import FTPError, FTPSession
from pasvftp.ui.shell import AppContext, CommandDispatcher, HELP_TEXT

config = ClientConfig.from_env()
configure_logging(config.log_level)
logger = logging.getLogger(__name__)


st.set_page_config(page_title="pasvftp", layout="wide")


def _session() -> FTPSession:
    ctx = st.session_state.get("ctx")
    return ctx.session if ctx else None


def _connect(host: str, port: int, username: str, password: str, timeout: float):
    session = FTPSession(host, port, timeout or None)
    try:
        welcome = session.connect()
        message = session.authenticate(username, password)
    except FTPError:
        session.disconnect()
        raise
    st.session_state["ctx"] = AppContext(session=session, output=None)
    st.session_state["dispatcher"] = CommandDispatcher(st.session_state["ctx"])
    return welcome, message


def _drop_session():
    st.session_state["ctx"] = None
    st.session_state["dispatcher"] = None


# --- UI ----------------------------------------------------------------------
st.title("pasvftp")

with st.sidebar:
    st.header("Connection")
    host = st.text_input("Host", value=config.host or "127.0.0.1")
    port = st.number_input("Port", min_value=1, max_value=65535, value=config.port)
    username = st.text_input("Username", value=config.user or "anonymous")
    password = st.text_input("Password", type="password")
    timeout = st.number_input("Timeout (s, 0 = none)", min_value=0.0, max_value=600.0, value=float(config.timeout or 0))

    if st.button("Connect"):
        logger.info("[UI] Connect button clicked: %s:%s", host, port)
        if _session() is not None and not _session().closed:
            _session().disconnect()
        try:
            welcome, message = _connect(host, int(port), username, password, float(timeout))
            st.info(welcome)
            st.success(message)
        except FTPError as e:
            logger.error("[UI] Connection failed: %s", e)
            _drop_session()
            st.error(f"Connection failed: {e}")

    if st.button("Disconnect"):
        session = _session()
        if session is not None:
            try:
                st.info(session.quit())
            except FTPError as e:
                st.warning(f"QUIT failed: {e}")
            _drop_session()


col1, col2 = st.columns([3, 1])

with col1:
    st.subheader("Terminal")
    cmd = st.text_input("Command", placeholder="e.g. ls, cd pub, cat readme.txt", key="cmd_input")
    cmd_run = st.button("Run")

    dispatcher = st.session_state.get("dispatcher")
    session = _session()

    if cmd_run and cmd:
        logger.info("[UI] Command executed: %s", cmd)
        if dispatcher is None:
            st.error("Not connected. Connect first.")
        else:
            with st.spinner("Running..."):
                output, done = dispatcher.capture(cmd)
            if output:
                st.code(output)
            if done:
                if not session.closed:
                    try:
                        st.info(session.quit())
                    except FTPError as e:
                        st.warning(f"QUIT failed: {e}")
                _drop_session()

    with st.expander("Commands"):
        st.code(HELP_TEXT)

    if session is not None and not session.closed:
        st.subheader("Transfer")
        uploaded_file = st.file_uploader("Upload file (STOR)", key="upload_file")
        if uploaded_file is not None and st.button("Upload"):
            try:
                with st.spinner("Uploading..."):
                    sent = session.store(uploaded_file.name, uploaded_file.getvalue())
                st.success(f"Bytes sent: {sent}")
            except FTPError as e:
                st.error(f"Upload failed: {e}")

        remote_name = st.text_input("Remote file (RETR)", key="retr_name")
        if remote_name and st.button("Fetch"):
            try:
                with st.spinner("Downloading..."):
                    contents = session.retrieve(remote_name)
                st.download_button("Save", data=contents, file_name=os.path.basename(remote_name))
            except FTPError as e:
                st.error(f"Download failed: {e}")

with col2:
    st.subheader("History")
    session = _session()
    if session is None:
        st.info("No history: not connected")
    else:
        if st.button("Clear History"):
            session.clear_history()
            st.rerun()
        for entry in reversed(session.get_history()[-100:]):
            t = entry.get("time")
            time_str = t.isoformat() if isinstance(t, datetime) else str(t)
            with st.expander(f"{time_str} — {entry.get('command')}"):
                reply = entry.get("reply")
                st.write(f"Code: {reply.code}")
                st.write(f"Type: {reply.type}")
                st.code(reply.message)
                if entry.get("size") is not None:
                    st.write(f"Bytes: {entry['size']}")
                if entry.get("error"):
                    st.error("This entry had an error")


# Footer
st.markdown("---")
st.caption("pasvftp Streamlit UI — command terminal, transfers and session history.")
