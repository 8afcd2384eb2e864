import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from config import DEMOTIONS, ORDERINGS, TIMEOUT_BASES, TIMEOUT_TICKS, SimulationConfig
from events import events_frame, execution_segments
from metrics import tasks_frame
from simulator import Simulator
from workload import generate_workload, read_task_records

PRIORITY_COLORS = {0: "#d62728", 1: "#1f77b4", 2: "#2ca02c", 3: "#ff7f0e"}

st.set_page_config(
    page_title="Four-Tier Scheduler Simulator",
    page_icon="⏱",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.2rem;
        font-weight: bold;
        color: #1f77b4;
        text-align: center;
        margin-bottom: 1.5rem;
    }
</style>
""", unsafe_allow_html=True)

st.markdown('<h1 class="main-header">Real-Time FCFS + MLFQ Scheduler</h1>', unsafe_allow_html=True)

with st.sidebar:
    st.header("🔧 Workload")
    source = st.radio("Task source:", ["Generated", "Upload task file"])

    if source == "Generated":
        scenario = st.selectbox(
            "Scenario:",
            ["balanced", "bursty", "real_time", "starvation"],
            help="Shape of the generated task set"
        )
        num_tasks = st.slider("Number of Tasks", 1, 100, 20)
        rt_fraction = st.slider("Real-time Fraction", 0.0, 1.0, 0.2)
        max_burst = st.slider("Max Burst", 1, 20, 5)
        seed = st.number_input("Random Seed", value=42, help="Seed for reproducible workloads")
        uploaded = None
    else:
        uploaded = st.file_uploader("Task file (arrival, priority, burst)", type=["txt", "csv"])

    st.markdown("---")
    st.header("⚙️ Policies")
    ordering = st.selectbox("Queue Ordering:", list(ORDERINGS))
    demotion = st.selectbox("Demotion:", list(DEMOTIONS))
    timeout_basis = st.selectbox("Timeout Basis:", list(TIMEOUT_BASES))
    timeout_ticks = st.slider("Timeout (ticks)", 1, 100, TIMEOUT_TICKS)

    if st.button("▶ Run Simulation", type="primary", key="run_btn"):
        st.session_state.run_simulation = True

if st.session_state.get('run_simulation', False):
    st.session_state.run_simulation = False

    if source == "Generated":
        records = generate_workload(scenario, num_tasks=num_tasks, seed=int(seed),
                                    rt_fraction=rt_fraction, max_burst=max_burst)
    elif uploaded is not None:
        records = read_task_records(uploaded.getvalue().decode("utf-8").splitlines())
    else:
        records = []

    if not records:
        st.error("No valid tasks to schedule.")
        st.stop()

    config = SimulationConfig(ordering=ordering, demotion=demotion,
                              timeout_basis=timeout_basis, timeout_ticks=timeout_ticks)
    sim = Simulator(config)
    sim.load_tasks(records)
    with st.spinner("Simulating..."):
        results = sim.run()

    st.success(f"✅ Simulation {results['outcome']} after {results['elapsed_ticks']} ticks")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Completed", f"{results['completed']}/{results['total_tasks']}")
        st.metric("Timed Out", results['timed_out'])
    with col2:
        st.metric("Context Switches", results['context_switches'])
        st.metric("Elapsed Ticks", results['elapsed_ticks'])
    with col3:
        st.metric("Avg Turnaround", f"{results['avg_turnaround']:.2f}")
        st.metric("Avg Waiting", f"{results['avg_waiting']:.2f}")
    with col4:
        st.metric("CPU Utilization", f"{results['cpu_utilization']:.1%}")
        st.metric("Throughput", f"{results['throughput']:.2f}")

    st.subheader("📅 Task Table")
    st.dataframe(tasks_frame(sim.tasks), use_container_width=True)

    st.subheader("📊 Execution Timeline (Gantt Chart)")
    segments = execution_segments(sim.events)
    if segments:
        df_gantt = pd.DataFrame(segments)
        fig_gantt = go.Figure()
        for _, row in df_gantt.iterrows():
            fig_gantt.add_trace(go.Bar(
                x=[row['end'] - row['start']],
                y=[f"Task {row['task_id']}"],
                orientation='h',
                base=row['start'],
                marker_color=PRIORITY_COLORS.get(row['priority'], "#7f7f7f"),
                hovertemplate=f"Task: {row['task_id']}<br>" +
                              f"Priority: {row['priority']}<br>" +
                              f"Start: {row['start']}<br>" +
                              f"End: {row['end']}<extra></extra>"
            ))
        fig_gantt.update_layout(
            title="Dispatches by Task (colored by priority level)",
            xaxis_title="Tick",
            yaxis_title="Task",
            height=max(300, 25 * len(sim.tasks)),
            showlegend=False,
            barmode='overlay'
        )
        st.plotly_chart(fig_gantt, use_container_width=True)
    else:
        st.warning("No task was dispatched")

    st.subheader("📉 Priority Level Over Time")
    df_events = events_frame(sim.events)
    if not df_events.empty:
        fig_levels = px.line(df_events, x="tick", y="priority", color="task_id",
                             markers=True, line_shape="hv")
        fig_levels.update_yaxes(autorange="reversed")
        st.plotly_chart(fig_levels, use_container_width=True)

        with st.expander("Event trace"):
            st.dataframe(df_events, use_container_width=True)
