"""
UserMirrorer simulation dashboard.

Pick a user, inspect history and exposure list, edit the generated prompt
and run it against the teacher, student and fine-tuned models side by side.

Run:
    streamlit run scripts/dashboard.py
"""

import asyncio
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import get_settings, setup_logging
from src.ai_layer.prompt_builder import exposure_label
from src.data_layer.mock_data_loader import JsonDataProvider
from src.simulation_layer.backends import build_backends
from src.simulation_layer.engine import SimulationEngine
from src.simulation_layer.models import SimulationState, matches_ground_truth

MODEL_COLORS = {"teacher": "#4CAF50", "student": "#2196F3", "fine_tuned": "#9C27B0"}

st.set_page_config(
    page_title="UserMirrorer",
    page_icon="🪞",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .model-card {
        border-top: 4px solid;
        border-radius: 8px;
        padding: 12px 16px;
        background-color: #f8f9fa;
    }
    .badge {
        display: inline-block;
        padding: 2px 10px;
        margin-right: 6px;
        border-radius: 12px;
        background-color: #eef1f5;
        font-size: 0.9rem;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def load_provider():
    setup_logging()
    return JsonDataProvider(get_settings().paths.mock_data_path)


def get_engine(use_mock: bool) -> SimulationEngine:
    key = f"engine_{'mock' if use_mock else 'live'}"
    if key not in st.session_state:
        st.session_state[key] = SimulationEngine(build_backends(get_settings(), force_mock=use_mock))
    return st.session_state[key]


def render_result(container, backend, slot, user):
    color = MODEL_COLORS.get(backend.name, "#666")
    with container.container():
        st.markdown(
            f"<div class='model-card' style='border-top-color:{color}'><b>{backend.display_name}</b></div>",
            unsafe_allow_html=True,
        )
        if slot.loading:
            st.info("Simulating...")
            return
        result = slot.result
        if result is None:
            return
        if result.is_error:
            st.error(f"{result.stimulus.text}\n\n{result.knowledge.text}")
            return
        if slot.from_fallback:
            st.caption("Live call failed; showing cached result.")
        st.markdown(f"**Stimulus:** {result.stimulus.text}")
        st.markdown(f"*Stimulus Factors:* {result.stimulus.factors}")
        st.markdown(f"**Knowledge:** {result.knowledge.text}")
        st.markdown(f"*Knowledge Factors:* {result.knowledge.factors}")
        st.markdown(f"**Evaluation:** {result.evaluation.text}")
        st.markdown(f"*Evaluation Style:* {result.evaluation.style}")
        match = matches_ground_truth(result, user)
        mark = "" if match is None else (" ✅" if match else " ❌")
        st.markdown(f"### Behavior: {result.behavior}{mark}")


def main():
    provider = load_provider()

    # Sidebar: domain + user selection
    st.sidebar.title("UserMirrorer")
    domains = provider.get_available_domains()
    domain = st.sidebar.radio("Domain", domains, horizontal=True)
    users = provider.get_users_by_domain(domain)
    if not users:
        st.sidebar.info("No users in this domain.")
        return
    labels = {u.id: f"{u.name} ({u.id})" for u in users}
    user_id = st.sidebar.radio("User", list(labels), format_func=labels.get)
    use_mock = st.sidebar.toggle("Local mock models", value=False)
    user = provider.get_user_by_id(user_id)

    engine = get_engine(use_mock)
    if engine.selected_user is None or engine.selected_user.id != user.id:
        st.session_state["prompt"] = engine.select_user(user)

    # User header
    col_avatar, col_info = st.columns([1, 6])
    if user.avatar:
        col_avatar.image(user.avatar, width=96)
    with col_info:
        st.header(user.name)
        p = user.profile
        badges = [f"👤 {p.gender}", f"🎂 {p.age}"]
        if p.occupation:
            badges.append(f"💼 {p.occupation}")
        if p.location:
            badges.append(f"📍 {p.location}")
        st.markdown(" ".join(f"<span class='badge'>{b}</span>" for b in badges), unsafe_allow_html=True)
        if p.traits:
            st.caption(" · ".join(p.traits))

    col_history, col_exposure = st.columns(2)
    with col_history:
        st.subheader("Viewing History")
        history_df = pd.DataFrame(
            [{"Title": h.title, "Year": h.year, "Genre": h.genre, "Rating": h.rating} for h in user.history]
        )
        st.dataframe(history_df, hide_index=True, use_container_width=True)
    with col_exposure:
        st.subheader("Exposure List")
        exposure_df = pd.DataFrame(
            [
                {"": exposure_label(i), "Title": e.title, "Year": e.year, "Genre": e.genre}
                for i, e in enumerate(user.exposure_list)
            ]
        )
        st.dataframe(exposure_df, hide_index=True, use_container_width=True)

    # Prompt
    st.subheader("Simulation Prompt")
    prompt = st.text_area("Prompt", key="prompt", height=320, label_visibility="collapsed")
    run = st.button("Run Simulation", type="primary")

    columns = st.columns(len(engine.backends))
    placeholders = {b.name: col.empty() for b, col in zip(engine.backends, columns)}
    by_name = {b.name: b for b in engine.backends}

    def refresh(name=None, result=None):
        names = [name] if name else list(placeholders)
        for n in names:
            render_result(placeholders[n], by_name[n], engine.slots[n], user)

    async def run_and_render():
        task = asyncio.ensure_future(engine.run_simulation(user, prompt=prompt, on_result=refresh))
        # let the run mark its slots as loading before the first paint
        await asyncio.sleep(0)
        refresh()
        await task

    if run:
        asyncio.run(run_and_render())
    elif engine.state == SimulationState.COMPLETED:
        refresh()

    if user.ground_truth and engine.state == SimulationState.COMPLETED:
        st.caption(f"Ground truth: {user.ground_truth}")


main()
