from __future__ import annotations

import html
import math
import os

import streamlit as st

from alzheimer_prediction.client import ClientConfig, PredictionClient
from alzheimer_prediction.form import FORM_FIELDS, FORM_SECTIONS, FormField, FormSection, FormState

STATE_KEY = "form_state"

BASE_CSS = """
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;600;700&display=swap');

:root {
  --bg-1: #eff6ff;
  --bg-2: #ffffff;
  --text: #111827;
  --muted: #6b7280;
  --accent: #2563eb;
  --card: rgba(255, 255, 255, 0.92);
  --border: rgba(17, 24, 39, 0.08);
}

html, body, [class*="css"] {
  font-family: "Inter", sans-serif;
}

.stApp {
  background: linear-gradient(180deg, var(--bg-1), var(--bg-2));
  color: var(--text);
}

#MainMenu, footer {
  visibility: hidden;
}

.section-title {
  font-size: 1.1rem;
  font-weight: 600;
  margin-bottom: 0.4rem;
}

button[kind="primary"] {
  background: var(--accent);
  border-radius: 8px;
  font-weight: 600;
}

.result-card {
  margin-top: 1.5rem;
  border-radius: 10px;
  border: 1px solid #bfdbfe;
  background: #eff6ff;
  padding: 1rem 1.2rem;
  animation: fade-in 0.5s ease-out both;
}

.result-card.demo {
  border-color: #fde68a;
  background: #fffbeb;
}

.result-title {
  font-size: 1.1rem;
  font-weight: 600;
  color: #1e3a8a;
}

.result-body {
  margin-top: 0.4rem;
  color: #1e40af;
}

@keyframes fade-in {
  from {
    opacity: 0;
    transform: translateY(8px);
  }
  to {
    opacity: 1;
    transform: translateY(0);
  }
}
"""


def widget_key(name: str) -> str:
    return f"{name}_value"


def get_state() -> FormState:
    """Return the form state of the current session."""
    if STATE_KEY not in st.session_state:
        st.session_state[STATE_KEY] = FormState()
        sync_widgets(st.session_state[STATE_KEY])
    return st.session_state[STATE_KEY]


def sync_widgets(state: FormState) -> None:
    """Copy the record into the widget values.

    Args:
        state: Form state holding the record to display.
    """
    for name, form_field in FORM_FIELDS.items():
        value = state.record.get(name)
        if form_field.kind == "select":
            allowed = {option.value for option in form_field.options}
            widget_value = int(value) if value is not None and value in allowed else None
        else:
            widget_value = None if value is None or math.isnan(value) else float(value)
        st.session_state[widget_key(name)] = widget_value


def on_field_change(name: str) -> None:
    get_state().edit_field(name, st.session_state[widget_key(name)])


def on_load_sample(number: int) -> None:
    state = get_state()
    state.load_sample(number)
    sync_widgets(state)


def on_submit() -> None:
    get_state().start_submission()


def on_reset() -> None:
    state = get_state()
    state.reset()
    sync_widgets(state)


def apply_base_styles() -> None:
    """Inject the base theme styling."""
    st.markdown(f"<style>{BASE_CSS}</style>", unsafe_allow_html=True)


def render_field(form_field: FormField) -> None:
    """Render a single input bound to the form state.

    Args:
        form_field: Field configuration.
    """
    key = widget_key(form_field.name)
    if form_field.kind == "select":
        labels = {option.value: option.label for option in form_field.options}
        st.selectbox(
            form_field.label,
            [None, *labels],
            format_func=lambda value: "Select..." if value is None else labels[value],
            key=key,
            on_change=on_field_change,
            args=(form_field.name,),
        )
        return

    step = float(form_field.step or 1.0)
    st.number_input(
        form_field.label,
        min_value=None if form_field.min_value is None else float(form_field.min_value),
        max_value=None if form_field.max_value is None else float(form_field.max_value),
        step=step,
        format="%.0f" if step >= 1 else "%.2f",
        key=key,
        on_change=on_field_change,
        args=(form_field.name,),
    )


def render_section(section: FormSection) -> None:
    """Render a titled group of fields in a three-column grid.

    Args:
        section: Section configuration.
    """
    with st.container(border=True):
        st.markdown(
            f'<div class="section-title">{section.icon} {html.escape(section.title)}</div>',
            unsafe_allow_html=True,
        )
        columns = st.columns(3)
        for index, form_field in enumerate(section.fields):
            with columns[index % 3]:
                render_field(form_field)


def render_panel(state: FormState) -> None:
    """Render either the error panel or the result panel.

    Args:
        state: Form state holding the last outcome.
    """
    panel = state.panel
    if panel is None:
        return
    kind, message = panel
    if kind == "error":
        st.error(f"**Error**\n\n{message}")
        return
    css_class = "result-card demo" if state.demo_mode else "result-card"
    card = f"""
    <div class="{css_class}">
      <div class="result-title">Prediction Result</div>
      <div class="result-body">{html.escape(message)}</div>
    </div>
    """
    st.markdown(card, unsafe_allow_html=True)
    if state.demo_mode:
        st.caption("The model is unavailable; this result is randomly generated and is not a real prediction.")


def main() -> None:
    """Run the Streamlit frontend."""
    st.set_page_config(page_title="Alzheimer's Disease Prediction", layout="wide")
    apply_base_styles()

    backend_default = os.environ.get("BACKEND_URL") or "http://127.0.0.1:8000"
    token_default = os.environ.get("BACKEND_AUTH_TOKEN", "")
    st.sidebar.markdown("### Backend")
    backend_url = st.sidebar.text_input("Backend URL", value=backend_default)
    auth_token = st.sidebar.text_input("Auth token", value=token_default, type="password")
    st.sidebar.caption("Endpoint: /predict")
    client = PredictionClient(ClientConfig(base_url=backend_url, auth_token=auth_token or None))

    st.title("Alzheimer's Disease Prediction")

    state = get_state()

    for section in FORM_SECTIONS:
        render_section(section)

    col_sample_1, col_sample_2, col_reset, _, col_submit = st.columns([1, 1, 1, 2, 1])
    with col_sample_1:
        st.button("Sample Patient 1", on_click=on_load_sample, args=(1,))
    with col_sample_2:
        st.button("Sample Patient 2", on_click=on_load_sample, args=(2,))
    with col_reset:
        st.button("Reset", on_click=on_reset)
    with col_submit:
        st.button("Predict Risk", type="primary", disabled=state.is_submitting, on_click=on_submit)

    if not state.is_submitting:
        render_panel(state)
        return

    # The flag was set by on_submit, so the button above is rendered disabled for this run.
    try:
        with st.spinner("Processing..."):
            state.send(client)
        render_panel(state)
    finally:
        state.finish_submission()
    # Rerun to re-enable the button now that the outcome is on screen.
    st.rerun()


if __name__ == "__main__":
    main()
