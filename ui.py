# ui.py
import asyncio
import streamlit as st

import broll
from broll import format_time

# --- Session Handling ---

def get_session() -> broll.VisualSession:
    """Returns the session stored in Streamlit state, creating it on first use."""
    if 'visual_session' not in st.session_state:
        broll.setup_logging()
        st.session_state['visual_session'] = broll.build_session()
    return st.session_state['visual_session']


def render_status(placeholder, snapshot: broll.SessionSnapshot):
    text = snapshot.status.render()
    if snapshot.status.is_error:
        placeholder.error(text)
    elif snapshot.status.stage == broll.Stage.COMPLETE:
        placeholder.success(text)
    else:
        placeholder.info(text)


STATUS_LABELS = {
    broll.FetchStatus.IDLE: "⏳ waiting",
    broll.FetchStatus.SUGGESTING: "💡 suggesting...",
    broll.FetchStatus.FETCHING: "🔎 fetching...",
    broll.FetchStatus.FETCHED: "✅ image found",
    broll.FetchStatus.FAILED_SUGGESTION: "❌ suggestion failed",
    broll.FetchStatus.FAILED_FETCH: "❌ no image for keyword",
    broll.FetchStatus.NO_IMAGE_FOUND: "➖ no visual",
}


def render_segment_table(placeholder, snapshot: broll.SessionSnapshot):
    rows = []
    for i, segment in enumerate(snapshot.segments):
        record = snapshot.images.get(i)
        rows.append({
            "#": i + 1,
            "time": f"{format_time(segment.start_time)} - {format_time(segment.end_time)}",
            "sentence": segment.text,
            "keyword": segment.visual_query or "",
            "status": STATUS_LABELS[segment.fetch_status],
            "image": record.display_url if record else "",
        })
    if rows:
        placeholder.dataframe(rows, use_container_width=True, hide_index=True)


# --- Callback Functions ---

def trigger_processing(status_placeholder, table_placeholder):
    """Called when the 'Process Video' button is clicked."""
    session = get_session()
    unsubscribe = session.subscribe(lambda snap: (render_status(status_placeholder, snap),
                                                  render_segment_table(table_placeholder, snap)))
    try:
        asyncio.run(session.process())
    except broll.ConfigurationError as e:
        st.error(f"Cannot start processing: {e}")
    finally:
        unsubscribe()
        session.playback.cancel_timers()


def load_input(source):
    session = get_session()
    try:
        asyncio.run(session.select_input(source))
    except ValueError as e:
        st.error(str(e))


# --- UI Configuration ---
st.set_page_config(page_title="AI Video Visualizer", page_icon="🎬", layout="wide")
st.title("🎬 AI Video Visualizer")
st.markdown("Upload a video or select a preset, get it transcribed, and see AI-suggested images synced to the dialogue.")

session = get_session()
for problem in session.missing_services():
    st.error(f"Critical Error: {problem}. Set it in your environment or .env file.")

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("1. Choose Input")
    method = st.radio("Input", ("Upload File", "Remote URL", "Preset"), horizontal=True)

    if method == "Upload File":
        video = st.file_uploader("Main video", type=["mp4", "mov", "webm", "mkv"])
        audio = st.file_uploader("Optional audio for transcription", type=["mp3", "wav", "m4a"])
        if st.button("Load File", disabled=video is None):
            load_input(broll.FileInput(
                name=video.name,
                data=video.getvalue(),
                mime_type=video.type or "",
                audio_override=audio.getvalue() if audio is not None else None,
            ))
    elif method == "Remote URL":
        url = st.text_input("Video or audio URL", placeholder="https://...")
        if st.button("Load URL", disabled=not url.strip()):
            load_input(broll.UrlInput(url))
    else:
        presets = {p["id"]: p for p in broll.PRESET_VIDEOS}
        preset_id = st.selectbox("Preset", options=list(presets),
                                 format_func=lambda i: f"{i}. {presets[i]['name']} - {presets[i]['description']}")
        if st.button("Load Preset"):
            with st.spinner(f"Loading preset '{presets[preset_id]['name']}'..."):
                load_input(broll.PresetInput(preset_id))

    st.divider()
    st.subheader("2. Process")
    status_placeholder = st.empty()
    render_status(status_placeholder, session.snapshot())
    process_clicked = st.button("Process Video", use_container_width=True,
                                disabled=session.media is None or session.processing)

with col2:
    st.subheader("3. Segments & Images")
    table_placeholder = st.empty()
    if process_clicked:
        trigger_processing(status_placeholder, table_placeholder)
    snapshot = session.snapshot()
    render_segment_table(table_placeholder, snapshot)

    if snapshot.segments:
        with st.expander("Override an image"):
            index = st.number_input("Segment #", min_value=1, max_value=len(snapshot.segments), step=1)
            new_url = st.text_input("Image URL (leave empty to restore the fetched image)")
            if st.button("Save Image URL"):
                session.override_image(int(index) - 1, new_url)
                st.rerun()

        st.subheader("4. Preview")
        if session.media and session.media.media_source.startswith("http"):
            st.video(session.media.media_source)
        end = max(s.end_time for s in snapshot.segments)
        t = st.slider("Playback time (s)", min_value=0.0, max_value=float(end), value=0.0, step=0.1)
        session.seek(t)

        playing = st.toggle("Playing", value=session.playback.is_playing,
                            disabled=not session.can_start_playback)
        if playing and not session.playback.is_playing:
            session.on_play()
        elif not playing and session.playback.is_playing:
            session.on_pause()

        active = session.active_index
        if active < 0:
            st.caption("No sentence is spoken at this moment.")
        else:
            st.markdown(f"**Sentence {active + 1}:** {snapshot.segments[active].text}")
            if session.displayed_image_url:
                st.image(session.displayed_image_url, use_container_width=True)
            elif not session.playback.is_playing:
                st.caption("Press play to show the overlay image.")
            elif session.active_image_url:
                st.caption(f"Image hidden after {broll.CONFIG['IMAGE_DISPLAY_DURATION_SEC']}s. "
                           "Move the slider to show the next one.")
            else:
                st.caption("No image for this sentence.")
