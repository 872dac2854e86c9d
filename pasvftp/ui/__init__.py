"""Front-ends: the interactive shell and the Streamlit web UI."""
